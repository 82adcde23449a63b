from __future__ import annotations

from dataclasses import dataclass

from tagref.checks import (
    check_dir_references,
    check_duplicates,
    check_file_references,
    check_tag_references,
)
from tagref.engine import ScanResult
from tagref.exceptions import ValidationFailure

_PLURALS = {"directory": "directories"}


def count(n: int, noun: str) -> str:
    if n == 1:
        return f"{n} {noun}"
    return f"{n} {_PLURALS.get(noun, noun + 's')}"


@dataclass(frozen=True)
class CheckReport:
    errors: tuple[str, ...]
    tags: int
    tag_refs: int
    file_refs: int
    dir_refs: int
    files_scanned: int

    @property
    def ok(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        return (
            f"{count(self.tags, 'tag')}, "
            f"{count(self.tag_refs, 'tag reference')}, "
            f"{count(self.file_refs, 'file reference')}, and "
            f"{count(self.dir_refs, 'directory reference')} "
            f"validated in {count(self.files_scanned, 'file')}."
        )

    def error_text(self) -> str:
        return "\n\n".join(self.errors)

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ValidationFailure(self.errors)


def build_report(result: ScanResult) -> CheckReport:
    """Run every check and merge the findings.

    All checks run even when an earlier one already failed, so a single run
    surfaces every problem.
    """
    state = result.state
    errors: list[str] = []
    errors.extend(check_duplicates(state.tags))
    errors.extend(check_tag_references(state.tag_labels(), state.tag_refs))
    errors.extend(check_file_references(state.file_refs))
    errors.extend(check_dir_references(state.dir_refs))
    return CheckReport(
        errors=tuple(errors),
        tags=len(state.tags),
        tag_refs=len(state.tag_refs),
        file_refs=len(state.file_refs),
        dir_refs=len(state.dir_refs),
        files_scanned=result.files_scanned,
    )


__all__ = ["CheckReport", "build_report", "count"]
