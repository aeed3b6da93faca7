from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import sys
from typing import List, Optional

_DATACLASS_KWARGS = {"slots": True} if sys.version_info >= (3, 10) else {}


@dataclass(**_DATACLASS_KWARGS)
class ScanIssue:
    """A node skipped during a directory walk and why."""

    path: str
    code: str
    message: str


@dataclass(**_DATACLASS_KWARGS)
class ProjectStats:
    size: int = 0
    file_count: int = 0
    folder_count: int = 0
    created: float = 0.0
    modified: float = 0.0
    language: Optional[str] = None
    issues: List[ScanIssue] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return len(self.issues)


@dataclass(**_DATACLASS_KWARGS)
class ProjectDetails:
    name: str
    description: str = ""
    version: str = ""
    author: str = ""
    license: str = ""
    repository: str = ""
    homepage: str = ""
    readme: Optional[str] = None
    package_json: Optional[dict] = None


@dataclass(**_DATACLASS_KWARGS)
class NodeModulesStatus:
    name: str
    path: str
    has_node_modules: bool
    has_package_json: bool


@dataclass(**_DATACLASS_KWARGS)
class NodeModulesReport:
    root_has_node_modules: bool = False
    root_has_package_json: bool = False
    modules: List[NodeModulesStatus] = field(default_factory=list)


class MovePhase(str, Enum):
    preparing = "preparing"
    moving = "moving"
    cleaning = "cleaning"
    complete = "complete"
    error = "error"


@dataclass(**_DATACLASS_KWARGS)
class MoveProgress:
    phase: MovePhase
    current_file: Optional[str] = None
    files_processed: Optional[int] = None
    total_files: Optional[int] = None
    error: Optional[str] = None

    @property
    def percent(self) -> float:
        if self.phase is MovePhase.complete:
            return 100.0
        if not self.total_files:
            return 0.0
        return round((self.files_processed or 0) / self.total_files * 100, 2)


@dataclass(**_DATACLASS_KWARGS)
class MoveResult:
    success: bool
    new_path: Optional[str] = None
    error: Optional[str] = None
    used_fast_path: bool = False
