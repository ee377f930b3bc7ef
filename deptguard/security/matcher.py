"""
Path matching against composed menu records.

Ranking: EXACT > PREFIX > REGEX. Within a rank the longer literal wins
(href length for prefix, pattern length for regex). Remaining ties go to the
lowest record id so the result never depends on input order.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import IntEnum
from functools import lru_cache

from deptguard.security.errors import InvalidPattern
from deptguard.security.types import ComposedMenuRecord, MatchMode

logger = logging.getLogger(__name__)


class MatchRank(IntEnum):
    REGEX = 1
    PREFIX = 2
    EXACT = 3


@dataclass(frozen=True)
class MatchCandidate:
    record: ComposedMenuRecord
    rank: MatchRank
    score: int

    def sort_key(self) -> tuple[int, int, int]:
        return (-int(self.rank), -self.score, self.record.id)


@lru_cache(maxsize=512)
def compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a menu regex. Raises InvalidPattern instead of re.error."""

    try:
        return re.compile(pattern)
    except re.error as exc:
        raise InvalidPattern(pattern, str(exc)) from exc


def _safe_regex(pattern: str) -> re.Pattern[str] | None:
    try:
        return compile_pattern(pattern)
    except InvalidPattern as exc:
        logger.warning("%s; treating as never matching", exc)
        return None


def match_record(record: ComposedMenuRecord, path: str) -> MatchCandidate | None:
    """Return a candidate when `record` matches `path`, else None."""

    mode = record.match_mode
    if mode is MatchMode.EXACT:
        if record.href is not None and record.href == path:
            return MatchCandidate(record, MatchRank.EXACT, len(record.href))
        return None

    if mode is MatchMode.PREFIX:
        if record.href and path.startswith(record.href):
            return MatchCandidate(record, MatchRank.PREFIX, len(record.href))
        return None

    if mode is MatchMode.REGEX and record.pattern:
        regex = _safe_regex(record.pattern)
        # Unanchored search, like RegExp.test.
        if regex is not None and regex.search(path):
            return MatchCandidate(record, MatchRank.REGEX, len(record.pattern))
    return None


def find_candidates(records: Iterable[ComposedMenuRecord], path: str) -> list[MatchCandidate]:
    """All matching candidates among active records, best first."""

    candidates: list[MatchCandidate] = []
    for record in records:
        if not record.effective_is_active:
            continue
        candidate = match_record(record, path)
        if candidate is not None:
            candidates.append(candidate)
    candidates.sort(key=MatchCandidate.sort_key)
    return candidates


def pick_best_match(records: Iterable[ComposedMenuRecord], path: str) -> ComposedMenuRecord | None:
    """
    Pick the single best record for `path`.

    Hidden records stay eligible (hidden only affects navigation). Records
    disabled for the department never match.
    """

    candidates = find_candidates(records, path)
    if not candidates:
        return None
    best = candidates[0]
    logger.debug(
        "Path matched path=%s id=%s rank=%s score=%d candidates=%d",
        path,
        best.record.id,
        best.rank.name,
        best.score,
        len(candidates),
    )
    return best.record
