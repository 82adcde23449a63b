"""Parallel, fault-tolerant filesystem traversal.

Worker threads share one queue of pending directories. Each worker pops a
directory, lists it, pushes subdirectories back onto the queue and hands the
regular files it finds to the callback itself. Files that cannot be opened
or read are skipped without being counted.
"""

from __future__ import annotations

from collections import deque
import concurrent.futures
from dataclasses import dataclass, field
import logging
import os
from pathlib import Path
import threading
from typing import BinaryIO, Callable, Iterable, Sequence

import pathspec

logger = logging.getLogger(__name__)

FileCallback = Callable[[Path, BinaryIO], None]

DEFAULT_VCS_DIRS: frozenset[str] = frozenset({".git", ".hg", ".svn", ".bzr", "_darcs", "CVS"})
DEFAULT_IGNORE_FILES: tuple[str, ...] = (".gitignore", ".ignore")
_GIT_EXCLUDE = Path(".git") / "info" / "exclude"


def default_worker_count() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


@dataclass(frozen=True)
class IgnoreRules:
    """Which entries the walker leaves out.

    ``honor_ignore_files`` covers ignore files, ``.git/info/exclude`` and
    hidden entries. Version-control metadata directories are always pruned.
    """

    honor_ignore_files: bool = True
    vcs_dirs: frozenset[str] = DEFAULT_VCS_DIRS
    ignore_files: tuple[str, ...] = DEFAULT_IGNORE_FILES
    exclude: tuple[str, ...] = ()

    def exclude_spec(self) -> pathspec.GitIgnoreSpec | None:
        if not self.exclude:
            return None
        return pathspec.GitIgnoreSpec.from_lines(self.exclude)


@dataclass(frozen=True)
class _ScopedSpec:
    """Ignore rules read from one directory.

    Walked paths are made relative to ``base``; ``prefix`` is the location of
    ``base`` as seen from the directory holding the rules, non-empty only for
    rules read from above a root.
    """

    base: Path
    spec: pathspec.GitIgnoreSpec
    prefix: str = ""


@dataclass(frozen=True)
class _DirJob:
    path: Path
    specs: tuple[_ScopedSpec, ...] = field(default=())


def _read_ignore_lines(path: Path) -> list[str] | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace").splitlines()
    except FileNotFoundError:
        return None
    except OSError as exc:
        logger.debug("Could not read ignore file %s: %s", path, exc)
        return None


def _ignore_lines(directory: Path, rules: IgnoreRules) -> list[str]:
    lines: list[str] = []
    for name in rules.ignore_files:
        found = _read_ignore_lines(directory / name)
        if found:
            lines.extend(found)
    if (directory / ".git").is_dir():
        found = _read_ignore_lines(directory / _GIT_EXCLUDE)
        if found:
            lines.extend(found)
    return lines


def _ancestor_specs(root: Path, rules: IgnoreRules) -> tuple[_ScopedSpec, ...]:
    """Ignore rules from the directories between ``root`` and its repository top.

    Nothing is collected when ``root`` is itself the top of a repository or
    is not inside one.
    """
    try:
        resolved = root.resolve()
    except OSError:
        return ()
    if (resolved / ".git").exists():
        return ()
    chain: list[Path] = []
    for ancestor in resolved.parents:
        chain.append(ancestor)
        if (ancestor / ".git").exists():
            break
    else:
        return ()
    specs: list[_ScopedSpec] = []
    for ancestor in reversed(chain):
        lines = _ignore_lines(ancestor, rules)
        if lines:
            specs.append(
                _ScopedSpec(
                    base=root,
                    spec=pathspec.GitIgnoreSpec.from_lines(lines),
                    prefix=resolved.relative_to(ancestor).as_posix(),
                )
            )
    return tuple(specs)


def _is_ignored(path: Path, *, is_dir: bool, specs: Sequence[_ScopedSpec]) -> bool:
    # The innermost ignore file that has an opinion wins, as with git.
    for scoped in reversed(specs):
        try:
            rel = path.relative_to(scoped.base).as_posix()
        except ValueError:
            continue
        if scoped.prefix:
            rel = f"{scoped.prefix}/{rel}"
        if is_dir:
            rel += "/"
        result = scoped.spec.check_file(rel)
        if result.include is not None:
            return bool(result.include)
    return False


class ParallelWalker:
    def __init__(
        self,
        callback: FileCallback,
        *,
        workers: int | None = None,
        ignore: IgnoreRules | None = None,
    ):
        self._callback = callback
        self._workers = max(1, int(workers)) if workers else default_worker_count()
        self._ignore = ignore if ignore is not None else IgnoreRules()
        self._pending: deque[_DirJob] = deque()
        self._cond = threading.Condition()
        self._active = 0
        self._count_lock = threading.Lock()
        self._files_scanned = 0

    @property
    def workers(self) -> int:
        return self._workers

    def run(self, roots: Iterable[Path | str]) -> int:
        root_files: list[Path] = []
        for raw_root in roots:
            root = Path(raw_root)
            if root.is_dir():
                specs: tuple[_ScopedSpec, ...] = ()
                if self._ignore.honor_ignore_files:
                    specs = _ancestor_specs(root, self._ignore)
                exclude = self._ignore.exclude_spec()
                if exclude is not None:
                    specs = (*specs, _ScopedSpec(base=root, spec=exclude))
                self._pending.append(_DirJob(path=root, specs=specs))
            elif root.is_file():
                root_files.append(root)
            else:
                logger.debug("Skipping root that is neither a file nor a directory: %s", root)

        with concurrent.futures.ThreadPoolExecutor(
            max_workers=self._workers,
            thread_name_prefix="tagref-walk",
        ) as executor:
            futures = [executor.submit(self._visit_file, path) for path in root_files]
            futures.extend(executor.submit(self._drain) for _ in range(self._workers))
            for future in concurrent.futures.as_completed(futures):
                future.result()
        return self._files_scanned

    def _drain(self) -> None:
        while True:
            with self._cond:
                while not self._pending and self._active:
                    self._cond.wait()
                if not self._pending:
                    self._cond.notify_all()
                    return
                job = self._pending.pop()
                self._active += 1
            try:
                self._expand(job)
            finally:
                with self._cond:
                    self._active -= 1
                    self._cond.notify_all()

    def _push(self, jobs: list[_DirJob]) -> None:
        if not jobs:
            return
        with self._cond:
            self._pending.extend(jobs)
            self._cond.notify_all()

    def _scoped_specs(self, job: _DirJob) -> tuple[_ScopedSpec, ...]:
        if not self._ignore.honor_ignore_files:
            return job.specs
        lines = _ignore_lines(job.path, self._ignore)
        if not lines:
            return job.specs
        spec = pathspec.GitIgnoreSpec.from_lines(lines)
        return (*job.specs, _ScopedSpec(base=job.path, spec=spec))

    def _skip_name(self, name: str) -> bool:
        return self._ignore.honor_ignore_files and name.startswith(".")

    def _expand(self, job: _DirJob) -> None:
        specs = self._scoped_specs(job)
        subdirs: list[_DirJob] = []
        files: list[Path] = []
        try:
            with os.scandir(job.path) as entries:
                for entry in entries:
                    try:
                        if entry.is_symlink():
                            continue
                        is_dir = entry.is_dir(follow_symlinks=False)
                        is_file = not is_dir and entry.is_file(follow_symlinks=False)
                    except OSError:
                        continue
                    if is_dir and entry.name in self._ignore.vcs_dirs:
                        continue
                    if not (is_dir or is_file) or self._skip_name(entry.name):
                        continue
                    path = Path(entry.path)
                    if _is_ignored(path, is_dir=is_dir, specs=specs):
                        continue
                    if is_dir:
                        subdirs.append(_DirJob(path=path, specs=specs))
                    else:
                        files.append(path)
        except OSError as exc:
            logger.debug("Could not list directory %s: %s", job.path, exc)
            return
        self._push(subdirs)
        for path in files:
            self._visit_file(path)

    def _visit_file(self, path: Path) -> None:
        try:
            stream = open(path, "rb")
        except OSError as exc:
            logger.debug("Skipping unreadable file %s: %s", path, exc)
            return
        try:
            with stream:
                self._callback(path, stream)
        except OSError as exc:
            logger.debug("Skipping file that failed mid-read %s: %s", path, exc)
            return
        with self._count_lock:
            self._files_scanned += 1


def walk(
    roots: Iterable[Path | str],
    callback: FileCallback,
    *,
    workers: int | None = None,
    ignore: IgnoreRules | None = None,
) -> int:
    """Visit every regular file under ``roots`` and return how many were scanned.

    ``callback`` is invoked concurrently from several threads, once per file,
    with the file's path and an open binary stream.
    """
    return ParallelWalker(callback, workers=workers, ignore=ignore).run(roots)


__all__ = [
    "DEFAULT_IGNORE_FILES",
    "DEFAULT_VCS_DIRS",
    "FileCallback",
    "IgnoreRules",
    "ParallelWalker",
    "default_worker_count",
    "walk",
]
