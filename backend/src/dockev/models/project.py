from __future__ import annotations

import uuid
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


def new_id() -> str:
    return uuid.uuid4().hex


class Module(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1)
    path: str = Field(..., description="Relative to the project root, or absolute")
    tech_stack: List[str] = Field(default_factory=list)
    default_ide: str = "vscode"
    dev_server_command: Optional[str] = None
    last_opened_at: Optional[int] = None


class ModuleUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    path: Optional[str] = None
    tech_stack: Optional[List[str]] = None
    default_ide: Optional[str] = None
    dev_server_command: Optional[str] = None
    last_opened_at: Optional[int] = None


class ProjectConfig(BaseModel):
    dev_server_command: Optional[str] = None
    env_vars: Dict[str, str] = Field(default_factory=dict)
    versions: Dict[str, str] = Field(default_factory=dict)


class ProjectBase(BaseModel):
    name: str = Field(..., min_length=1)
    path: str = Field(..., min_length=1)
    category: str = ""
    tags: List[str] = Field(default_factory=list)
    default_ide: str = "vscode"
    last_opened_at: Optional[int] = None
    modules: Optional[List[Module]] = None
    config: Optional[ProjectConfig] = None
    color: Optional[str] = None
    description: Optional[str] = None


class ProjectCreate(ProjectBase):
    id: Optional[str] = None


class ProjectUpdate(BaseModel):
    """Partial update; only fields that were set are merged."""

    name: Optional[str] = Field(None, min_length=1)
    path: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = None
    tags: Optional[List[str]] = None
    default_ide: Optional[str] = None
    last_opened_at: Optional[int] = None
    modules: Optional[List[Module]] = None
    config: Optional[ProjectConfig] = None
    color: Optional[str] = None
    description: Optional[str] = None


class Project(ProjectBase):
    id: str = Field(default_factory=new_id)
