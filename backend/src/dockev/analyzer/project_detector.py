"""
Project Detector Module

Suggests sub-modules of a project folder and the tech stack each one uses.
Only the immediate children of the project root are inspected: every child
directory is matched against a static table of indicator files, and a
``package.json`` (when present) refines the result with framework markers
found among its dependencies.

Detection never raises for expected failures. Missing roots give an empty
list, unreadable children are skipped, and malformed ``package.json`` files
simply contribute nothing.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set, Tuple

from ..scanner.models import ScanIssue
from ..utils.paths import normalize_path

logger = logging.getLogger(__name__)

ROOT_MODULE_NAME = "root"
ROOT_MODULE_PATH = "."
ROOT_CONFIDENCE = 0.8
CONFIDENCE_STEP = 0.3


@dataclass
class DetectedModule:
    """A directory that looks like a module of the project."""
    name: str
    path: str
    tech_stack: List[str]
    confidence: float

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "path": self.path,
            "tech_stack": list(self.tech_stack),
            "confidence": self.confidence,
        }


@dataclass
class DetectionReport:
    modules: List[DetectedModule] = field(default_factory=list)
    issues: List[ScanIssue] = field(default_factory=list)


# Technology -> indicator file or directory names. Order is the order
# technologies appear in a detected tech stack.
TECH_SIGNALS: Dict[str, Tuple[str, ...]] = {
    "React Native / Expo": ("app.json", "app.config.js", "expo.json"),
    "React": ("package.json", "vite.config.ts"),
    "Node.js": ("package.json", "server.js", "index.js"),
    "Python": ("requirements.txt", "setup.py", "pyproject.toml", "main.py"),
    "Next.js": ("next.config.js", "next.config.ts", "pages", "app"),
    "Vue": ("vue.config.js",),
    "Angular": ("angular.json",),
    "Django": ("manage.py",),
    "Flask": ("app.py", "flask_app.py"),
    "Go": ("go.mod",),
    "Rust": ("Cargo.toml",),
}

# package.json dependency -> technology it confirms
FRAMEWORK_DEPENDENCIES: Tuple[Tuple[str, str], ...] = (
    ("expo", "React Native / Expo"),
    ("react-native", "React Native / Expo"),
    ("next", "Next.js"),
    ("vue", "Vue"),
    ("@angular/core", "Angular"),
)


def confidence_for(tech_count: int) -> float:
    return min(round(tech_count * CONFIDENCE_STEP, 10), 1.0)


class ProjectDetector:
    """
    Detects module candidates one directory level below a project root.

    The signal tables can be swapped per instance, which keeps tests and
    callers with custom indicator sets away from the module globals.
    """

    def __init__(
        self,
        tech_signals: Optional[Dict[str, Iterable[str]]] = None,
        framework_dependencies: Optional[Iterable[Tuple[str, str]]] = None,
    ):
        signals = tech_signals if tech_signals is not None else TECH_SIGNALS
        self.tech_signals = {name: tuple(indicators) for name, indicators in signals.items()}
        self.framework_dependencies = tuple(
            framework_dependencies if framework_dependencies is not None else FRAMEWORK_DEPENDENCIES
        )

    def detect(self, project_path: str | os.PathLike[str]) -> DetectionReport:
        """
        Scan the immediate subdirectories of ``project_path``.

        Args:
            project_path: Project root, ``~`` is expanded

        Returns:
            DetectionReport with candidates and every skipped node
        """
        report = DetectionReport()
        root = normalize_path(project_path)

        if not root.exists():
            logger.info(f"Project path does not exist: {root}")
            return report

        try:
            root_entries = self._list_entries(root)
        except OSError as exc:
            logger.warning(f"Unable to read project root {root}: {exc}")
            report.issues.append(ScanIssue(path=str(root), code="unreadable", message=str(exc)))
            return report

        for name in sorted(root_entries):
            if not root_entries[name]:
                continue
            subdir = root / name
            try:
                techs = self.detect_tech_stack_in(subdir)
            except OSError as exc:
                logger.warning(f"Skipping unreadable directory {subdir}: {exc}")
                report.issues.append(ScanIssue(path=str(subdir), code="unreadable", message=str(exc)))
                continue
            if techs:
                report.modules.append(
                    DetectedModule(
                        name=name,
                        path=os.path.relpath(subdir, root),
                        tech_stack=techs,
                        confidence=confidence_for(len(techs)),
                    )
                )

        root_techs = self._match_signals(root_entries)
        if root_techs and not report.modules:
            # single-module project
            report.modules.append(
                DetectedModule(
                    name=ROOT_MODULE_NAME,
                    path=ROOT_MODULE_PATH,
                    tech_stack=root_techs,
                    confidence=ROOT_CONFIDENCE,
                )
            )

        logger.debug(f"Detected {len(report.modules)} module(s) in {root}")
        return report

    def detect_tech_stack_in(self, directory: Path) -> List[str]:
        """Tech stack of one directory. Raises OSError when it cannot be listed."""
        entries = self._list_entries(directory)
        techs = self._match_signals(entries)
        if "package.json" in entries and not entries["package.json"]:
            for tech in self._package_json_techs(directory / "package.json"):
                if tech not in techs:
                    techs.append(tech)
        return techs

    def _match_signals(self, entries: Dict[str, bool]) -> List[str]:
        detected: List[str] = []
        for tech, indicators in self.tech_signals.items():
            if any(indicator in entries for indicator in indicators):
                detected.append(tech)
        return detected

    def _package_json_techs(self, package_json: Path) -> List[str]:
        dependencies = read_dependency_names(package_json)
        found: List[str] = []
        for dependency, tech in self.framework_dependencies:
            if dependency in dependencies and tech not in found:
                found.append(tech)
        return found

    @staticmethod
    def _list_entries(directory: Path) -> Dict[str, bool]:
        """Map entry name -> is directory, for direct children only."""
        entries: Dict[str, bool] = {}
        with os.scandir(directory) as iterator:
            for entry in iterator:
                try:
                    entries[entry.name] = entry.is_dir()
                except OSError:
                    entries[entry.name] = False
        return entries


def read_package_json(package_json: Path) -> Optional[dict]:
    """Parse a package.json, returning None when unreadable or malformed."""
    try:
        data = json.loads(package_json.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.debug(f"Ignoring unreadable package.json {package_json}: {exc}")
        return None
    return data if isinstance(data, dict) else None


def read_dependency_names(package_json: Path) -> Set[str]:
    """Union of ``dependencies`` and ``devDependencies`` keys."""
    data = read_package_json(package_json)
    if data is None:
        return set()
    names: Set[str] = set()
    for section in ("dependencies", "devDependencies"):
        deps = data.get(section)
        if isinstance(deps, dict):
            names.update(deps.keys())
    return names


_default_detector = ProjectDetector()


def detect_modules_report(project_path: str | os.PathLike[str]) -> DetectionReport:
    return _default_detector.detect(project_path)


def detect_modules(project_path: str | os.PathLike[str]) -> List[DetectedModule]:
    """Module candidates for ``project_path``; always a list, never raises."""
    try:
        return _default_detector.detect(project_path).modules
    except Exception as exc:
        logger.error(f"Error detecting modules in {project_path}: {exc}")
        return []


def detect_tech_stack(directory: str | os.PathLike[str]) -> List[str]:
    """Tech stack of a single directory, empty when it cannot be read."""
    try:
        return _default_detector.detect_tech_stack_in(normalize_path(directory))
    except OSError as exc:
        logger.warning(f"Unable to detect tech stack for {directory}: {exc}")
        return []
