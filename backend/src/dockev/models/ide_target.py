from __future__ import annotations

from dataclasses import dataclass
from typing import Union

KNOWN_IDE_IDS = ("vscode", "cursor", "webstorm", "terminal")


@dataclass(frozen=True)
class KnownIde:
    id: str


@dataclass(frozen=True)
class CustomIde:
    command: str
    name: str = ""


IdeTarget = Union[KnownIde, CustomIde]
