"""Validators over the aggregated directives.

Each check returns a list of error paragraphs and never raises for a
finding; an empty list means the check passed.
"""

from __future__ import annotations

import logging
import os
import stat
from typing import AbstractSet, Callable, Iterable, Mapping, Sequence

from tagref.aggregate import AggregateState
from tagref.directive import Directive, directive_sort_key

logger = logging.getLogger(__name__)


def check_duplicates(tags: Mapping[str, Sequence[Directive]]) -> list[str]:
    errors: list[str] = []
    for label in sorted(tags):
        group = tags[label]
        if len(group) <= 1:
            continue
        lines = [f"Duplicate tags found for label `{label}`:"]
        lines.extend(f"  {tag}" for tag in sorted(group, key=directive_sort_key))
        errors.append("\n".join(lines))
    return errors


def check_tag_references(
    tag_labels: AbstractSet[str],
    refs: Iterable[Directive],
) -> list[str]:
    return [
        f"No tag found for {ref}."
        for ref in sorted(refs, key=directive_sort_key)
        if ref.label not in tag_labels
    ]


def _check_path_references(
    refs: Iterable[Directive],
    *,
    is_expected_kind: Callable[[int], bool],
    expected_noun: str,
) -> list[str]:
    errors: list[str] = []
    for ref in sorted(refs, key=directive_sort_key):
        try:
            mode = os.stat(ref.label).st_mode
        except OSError as exc:
            logger.debug("stat failed for %s: %s", ref, exc)
            errors.append(f"Error when validating {ref}: {exc}")
            continue
        if not is_expected_kind(mode):
            errors.append(f"{ref} does not point to a {expected_noun}.")
    return errors


def check_file_references(refs: Iterable[Directive]) -> list[str]:
    return _check_path_references(refs, is_expected_kind=stat.S_ISREG, expected_noun="file")


def check_dir_references(refs: Iterable[Directive]) -> list[str]:
    return _check_path_references(refs, is_expected_kind=stat.S_ISDIR, expected_noun="directory")


def unused_tags(state: AggregateState) -> list[Directive]:
    referenced = {ref.label for ref in state.tag_refs}
    unused = [tag for tag in state.all_tags() if tag.label not in referenced]
    return sorted(unused, key=lambda tag: (tag.label, *directive_sort_key(tag)))


__all__ = [
    "check_dir_references",
    "check_duplicates",
    "check_file_references",
    "check_tag_references",
    "unused_tags",
]
