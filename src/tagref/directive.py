"""Directive grammar and per-file extraction.

A directive is a bracketed annotation such as ``[tag:label]``. The sigil
(``tag`` here) is configurable per kind and matched case-insensitively as
literal text. The label runs up to the closing bracket and is trimmed, so
labels may contain interior whitespace but never ``]``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
import io
import logging
from pathlib import Path
import re
from typing import Iterable

from tagref.exceptions import SigilError

logger = logging.getLogger(__name__)

_FORBIDDEN_SIGIL_CHARS = frozenset("]:\r\n")

# WS* SIGIL WS* ':' WS* LABEL WS* ']'
_DIRECTIVE_TEMPLATE = r"\[\s*{sigil}\s*:\s*([^\]\s](?:[^\]]*?[^\]\s])?)\s*\]"


class DirectiveKind(Enum):
    TAG = "tag"
    REF = "ref"
    FILE = "file"
    DIR = "dir"


@dataclass(frozen=True)
class Directive:
    kind: DirectiveKind
    label: str
    path: Path
    line_number: int

    def location(self) -> str:
        return f"{self.path}:{self.line_number}"

    def __str__(self) -> str:
        return f"[{self.kind.value}:{self.label}] @ {self.location()}"


def directive_sort_key(directive: Directive) -> tuple[str, int, str]:
    return (str(directive.path), directive.line_number, directive.label)


@dataclass(frozen=True)
class FileDirectives:
    tags: tuple[Directive, ...] = ()
    refs: tuple[Directive, ...] = ()
    files: tuple[Directive, ...] = ()
    dirs: tuple[Directive, ...] = ()

    def total(self) -> int:
        return len(self.tags) + len(self.refs) + len(self.files) + len(self.dirs)

    def is_empty(self) -> bool:
        return self.total() == 0


@dataclass(frozen=True)
class SigilSet:
    tag: str = "tag"
    ref: str = "ref"
    file: str = "file"
    dir: str = "dir"

    def for_kind(self, kind: DirectiveKind) -> str:
        return getattr(self, kind.value)


@dataclass(frozen=True)
class SigilMatchers:
    """Compiled matchers, one per directive kind, built once per run."""

    tag: re.Pattern[str]
    ref: re.Pattern[str]
    file: re.Pattern[str]
    dir: re.Pattern[str]
    _ordered: tuple[tuple[DirectiveKind, re.Pattern[str]], ...] = field(
        init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(
            self,
            "_ordered",
            (
                (DirectiveKind.TAG, self.tag),
                (DirectiveKind.REF, self.ref),
                (DirectiveKind.FILE, self.file),
                (DirectiveKind.DIR, self.dir),
            ),
        )

    def ordered(self) -> tuple[tuple[DirectiveKind, re.Pattern[str]], ...]:
        return self._ordered


def compile_sigil_matcher(sigil: str) -> re.Pattern[str]:
    if not isinstance(sigil, str):
        raise SigilError(str(sigil), "sigil must be a string")
    if not sigil.strip():
        raise SigilError(sigil, "sigil must not be empty")
    if sigil != sigil.strip():
        raise SigilError(sigil, "sigil must not start or end with whitespace")
    bad = sorted(_FORBIDDEN_SIGIL_CHARS.intersection(sigil))
    if bad:
        raise SigilError(sigil, f"sigil must not contain {', '.join(repr(ch) for ch in bad)}")
    try:
        return re.compile(
            _DIRECTIVE_TEMPLATE.format(sigil=re.escape(sigil)),
            re.IGNORECASE,
        )
    except re.error as exc:
        raise SigilError(sigil, str(exc)) from exc


def compile_sigil_matchers(sigils: SigilSet) -> SigilMatchers:
    return SigilMatchers(
        tag=compile_sigil_matcher(sigils.tag),
        ref=compile_sigil_matcher(sigils.ref),
        file=compile_sigil_matcher(sigils.file),
        dir=compile_sigil_matcher(sigils.dir),
    )


def _decode_line(raw: bytes) -> str | None:
    if raw.endswith(b"\n"):
        raw = raw[:-1]
        if raw.endswith(b"\r"):
            raw = raw[:-1]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _through_last_bracket(text: str) -> str:
    # No directive ends after the last "]"; every remaining opener is bounded
    # by a following "]", which keeps the match linear in the line length.
    end = text.rfind("]")
    return text[: end + 1] if end >= 0 else ""


def scan_lines(
    matchers: SigilMatchers,
    path: Path,
    lines: Iterable[bytes],
) -> FileDirectives:
    """Extract every directive from ``lines``.

    Lines that are not valid UTF-8 are skipped; they neither abort the scan
    nor shift the numbering of later lines.
    """
    found: dict[DirectiveKind, list[Directive]] = {kind: [] for kind in DirectiveKind}
    for line_number, raw in enumerate(lines, start=1):
        text = _decode_line(raw)
        if text is None:
            logger.debug("Skipping undecodable line %s:%d", path, line_number)
            continue
        text = _through_last_bracket(text)
        if not text:
            continue
        for kind, pattern in matchers.ordered():
            for match in pattern.finditer(text):
                found[kind].append(
                    Directive(
                        kind=kind,
                        label=match.group(1),
                        path=path,
                        line_number=line_number,
                    )
                )
    return FileDirectives(
        tags=tuple(found[DirectiveKind.TAG]),
        refs=tuple(found[DirectiveKind.REF]),
        files=tuple(found[DirectiveKind.FILE]),
        dirs=tuple(found[DirectiveKind.DIR]),
    )


def scan_text(matchers: SigilMatchers, path: Path, text: str) -> FileDirectives:
    return scan_lines(matchers, path, io.BytesIO(text.encode("utf-8")))


__all__ = [
    "Directive",
    "DirectiveKind",
    "FileDirectives",
    "SigilMatchers",
    "SigilSet",
    "compile_sigil_matcher",
    "compile_sigil_matchers",
    "directive_sort_key",
    "scan_lines",
    "scan_text",
]
