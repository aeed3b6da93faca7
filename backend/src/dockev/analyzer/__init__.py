from .project_detector import DetectedModule, DetectionReport, detect_modules, detect_modules_report, detect_tech_stack

__all__ = [
    "DetectedModule",
    "DetectionReport",
    "detect_modules",
    "detect_modules_report",
    "detect_tech_stack",
]
