from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import time
from typing import TYPE_CHECKING, Iterable

from tagref.aggregate import AggregateState, Aggregator
from tagref.directive import SigilSet, compile_sigil_matchers
from tagref.walk import IgnoreRules, walk

if TYPE_CHECKING:
    from tagref.config import RunSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult:
    state: AggregateState
    files_scanned: int


def scan(
    roots: Iterable[Path | str],
    sigils: SigilSet | None = None,
    *,
    workers: int | None = None,
    ignore: IgnoreRules | None = None,
) -> ScanResult:
    """Walk ``roots`` and collect every directive.

    Sigils are compiled before the walk starts, so an unusable sigil raises
    ``SigilError`` without touching the filesystem.
    """
    matchers = compile_sigil_matchers(sigils if sigils is not None else SigilSet())
    root_list = [Path(root) for root in roots]
    aggregator = Aggregator()
    started = time.monotonic()
    files_scanned = walk(
        root_list,
        aggregator.scan_file(matchers),
        workers=workers,
        ignore=ignore,
    )
    state = aggregator.snapshot()
    logger.debug(
        "Scanned %d file(s) under %s in %.3fs: %d tag label(s), %d ref(s), %d file ref(s), %d dir ref(s)",
        files_scanned,
        ", ".join(str(root) for root in root_list),
        time.monotonic() - started,
        len(state.tags),
        len(state.tag_refs),
        len(state.file_refs),
        len(state.dir_refs),
    )
    return ScanResult(state=state, files_scanned=files_scanned)


def scan_with_settings(settings: RunSettings) -> ScanResult:
    return scan(
        settings.roots,
        settings.sigils,
        workers=settings.workers,
        ignore=settings.ignore,
    )


__all__ = ["ScanResult", "scan", "scan_with_settings"]
