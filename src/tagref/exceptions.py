"""Exception types raised by tagref."""

from __future__ import annotations

from typing import Sequence


class TagrefError(Exception):
    """Base class for every error tagref raises on purpose."""


class ConfigError(TagrefError):
    """Configuration could not be turned into run settings."""


class SigilError(ConfigError):
    """A sigil cannot be compiled into a literal directive matcher.

    This is a structural error: it is raised before any file is scanned.
    """

    def __init__(self, sigil: str, reason: str):
        super().__init__(f"Invalid sigil {sigil!r}: {reason}")
        self.sigil = sigil
        self.reason = reason


class ValidationFailure(TagrefError):
    """One or more checks reported problems.

    ``errors`` holds every finding, in report order. The string form is the
    complete error block shown to the user.
    """

    def __init__(self, errors: Sequence[str]):
        self.errors = tuple(errors)
        super().__init__("\n\n".join(self.errors))
