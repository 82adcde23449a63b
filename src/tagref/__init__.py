"""tagref package root."""

from tagref.directive import Directive, DirectiveKind, SigilSet
from tagref.engine import scan
from tagref.exceptions import ConfigError, SigilError, TagrefError, ValidationFailure
from tagref.report import CheckReport, build_report

__all__ = [
    "__version__",
    "CheckReport",
    "ConfigError",
    "Directive",
    "DirectiveKind",
    "SigilError",
    "SigilSet",
    "TagrefError",
    "ValidationFailure",
    "build_report",
    "scan",
]

__version__ = "0.3.0"
