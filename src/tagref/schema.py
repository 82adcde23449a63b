from __future__ import annotations

from typing import Iterable, List

from pydantic import BaseModel

from tagref.directive import Directive, DirectiveKind
from tagref.report import CheckReport


class DirectiveDTO(BaseModel):
    kind: str
    label: str
    path: str
    line_number: int

    @classmethod
    def from_directive(cls, directive: Directive) -> "DirectiveDTO":
        return cls(
            kind=directive.kind.value,
            label=directive.label,
            path=str(directive.path),
            line_number=directive.line_number,
        )


class DirectiveListDTO(BaseModel):
    kind: str
    directives: List[DirectiveDTO] = []

    @classmethod
    def from_directives(
        cls, kind: DirectiveKind, directives: Iterable[Directive]
    ) -> "DirectiveListDTO":
        return cls(
            kind=kind.value,
            directives=[DirectiveDTO.from_directive(item) for item in directives],
        )


class CheckCountsDTO(BaseModel):
    tags: int
    tag_refs: int
    file_refs: int
    dir_refs: int
    files_scanned: int


class CheckReportDTO(BaseModel):
    ok: bool
    errors: List[str] = []
    counts: CheckCountsDTO

    @classmethod
    def from_report(cls, report: CheckReport) -> "CheckReportDTO":
        return cls(
            ok=report.ok,
            errors=list(report.errors),
            counts=CheckCountsDTO(
                tags=report.tags,
                tag_refs=report.tag_refs,
                file_refs=report.file_refs,
                dir_refs=report.dir_refs,
                files_scanned=report.files_scanned,
            ),
        )
