from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
import threading
from types import MappingProxyType
from typing import BinaryIO, Mapping

from tagref.directive import Directive, FileDirectives, SigilMatchers, scan_lines
from tagref.walk import FileCallback


@dataclass(frozen=True)
class AggregateState:
    tags: Mapping[str, tuple[Directive, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    tag_refs: tuple[Directive, ...] = ()
    file_refs: tuple[Directive, ...] = ()
    dir_refs: tuple[Directive, ...] = ()

    def tag_labels(self) -> frozenset[str]:
        return frozenset(self.tags)

    def all_tags(self) -> tuple[Directive, ...]:
        return tuple(tag for group in self.tags.values() for tag in group)


class Aggregator:
    """Collects per-file scan results from concurrent workers.

    Each ``merge`` call publishes one file's directives in a single critical
    section, so no reader ever sees part of a file.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tags: dict[str, list[Directive]] = {}
        self._tag_refs: list[Directive] = []
        self._file_refs: list[Directive] = []
        self._dir_refs: list[Directive] = []

    def merge(self, found: FileDirectives) -> None:
        if found.is_empty():
            return
        with self._lock:
            for tag in found.tags:
                self._tags.setdefault(tag.label, []).append(tag)
            self._tag_refs.extend(found.refs)
            self._file_refs.extend(found.files)
            self._dir_refs.extend(found.dirs)

    def scan_file(self, matchers: SigilMatchers) -> FileCallback:
        def _scan_and_merge(path: Path, stream: BinaryIO) -> None:
            self.merge(scan_lines(matchers, path, stream))

        return _scan_and_merge

    def snapshot(self) -> AggregateState:
        with self._lock:
            return AggregateState(
                tags=MappingProxyType(
                    {label: tuple(tags) for label, tags in self._tags.items()}
                ),
                tag_refs=tuple(self._tag_refs),
                file_refs=tuple(self._file_refs),
                dir_refs=tuple(self._dir_refs),
            )


__all__ = ["AggregateState", "Aggregator"]
