"""
Guard decision engine.

decide() is a pure function of (path, identity, composed records):

1. no identity (or no resolvable effective role)  -> UNAUTHENTICATED
2. no matching record                              -> NOT_FOUND
   (lenient mode probes path ancestors first)
3. required = max min_priority over the matched record's ancestor chain
4. identity priority >= required                   -> ALLOWED, else FORBIDDEN

decide_for_department() loads the records itself and fails closed when they
cannot be read.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from deptguard.security.errors import DeptGuardError, PermissionDenied
from deptguard.security.matcher import pick_best_match
from deptguard.security.menu_compose import MenuComposer
from deptguard.security.priority import build_menu_index, compute_required_priority
from deptguard.security.types import ComposedMenuRecord, ComposeMode, DecisionReason, GuardDecision, Identity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GuardOptions:
    """
    strict_not_found: an unmatched path is NOT_FOUND. When False, path
    ancestors (/a/b/c -> /a/b -> /a -> /) are probed and the first one that
    matches decides.
    """

    strict_not_found: bool = True


def enumerate_ancestor_paths(path: str) -> list[str]:
    """
    Return the path and its ancestors, deepest first.

    Example:
        /a/b/c  ->  ["/a/b/c", "/a/b", "/a", "/"]
    """

    parts = [p for p in path.split("/") if p]
    paths: list[str] = []
    for i in range(len(parts), -1, -1):
        paths.append("/" + "/".join(parts[:i]))
    return paths


def _decide_on_match(
    path: str,
    identity: Identity,
    record: ComposedMenuRecord,
    by_id: Mapping[int, ComposedMenuRecord],
) -> GuardDecision:
    required = compute_required_priority(record, by_id)
    priority = identity.priority
    if priority is not None and priority >= required.required:
        logger.debug(
            "Guard allowed path=%s user_id=%s priority=%s matched=%s required=%s",
            path,
            identity.user_id,
            priority,
            record.id,
            required.required,
        )
        return GuardDecision(
            reason=DecisionReason.ALLOWED,
            matched_id=record.id,
            required_priority=required.required,
            chain=required.chain,
        )

    logger.debug(
        "Guard forbidden path=%s user_id=%s priority=%s matched=%s required=%s chain=%s",
        path,
        identity.user_id,
        priority,
        record.id,
        required.required,
        required.chain,
    )
    return GuardDecision(
        reason=DecisionReason.FORBIDDEN,
        matched_id=record.id,
        required_priority=required.required,
        chain=required.chain,
    )


def decide(
    path: str,
    identity: Identity | None,
    records: Sequence[ComposedMenuRecord],
    options: GuardOptions | None = None,
) -> GuardDecision:
    """Decide whether `identity` may proceed to `path` given the department's composed records."""

    options = options or GuardOptions()

    if identity is None or identity.effective_role is None:
        logger.debug("Guard unauthenticated path=%s", path)
        return GuardDecision(reason=DecisionReason.UNAUTHENTICATED)

    index = build_menu_index(records)

    best = pick_best_match(records, path)
    if best is not None:
        return _decide_on_match(path, identity, best, index.by_id)

    if not options.strict_not_found:
        for ancestor in enumerate_ancestor_paths(path)[1:]:
            candidate = pick_best_match(records, ancestor)
            if candidate is not None:
                logger.debug("Guard lenient match path=%s via=%s", path, ancestor)
                return _decide_on_match(path, identity, candidate, index.by_id)

    logger.debug("Guard not found path=%s user_id=%s", path, identity.user_id)
    return GuardDecision(reason=DecisionReason.NOT_FOUND)


def decide_for_department(
    path: str,
    identity: Identity | None,
    composer: MenuComposer,
    options: GuardOptions | None = None,
) -> GuardDecision:
    """
    Compose the identity's department records, then decide.

    A failure while loading the records yields FORBIDDEN, never ALLOWED.
    """

    if identity is None or identity.effective_role is None:
        return GuardDecision(reason=DecisionReason.UNAUTHENTICATED)

    try:
        records = composer.compose_menus(identity.department_id, ComposeMode.AUTHORIZATION)
    except DeptGuardError as exc:
        logger.warning(
            "Menu records unavailable department_id=%s path=%s: %s",
            identity.department_id,
            path,
            exc,
        )
        return GuardDecision(reason=DecisionReason.FORBIDDEN)

    return decide(path, identity, records, options)


def require_admin(
    identity: Identity | None,
    threshold: int,
    path: str | None = None,
    records: Sequence[ComposedMenuRecord] | None = None,
    options: GuardOptions | None = None,
) -> Identity:
    """
    Gate an administrative write.

    When `path` is given the identity must first pass decide() for it; the
    effective priority must then reach `threshold`. Raises PermissionDenied.
    """

    if path is not None:
        decision = decide(path, identity, records or (), options)
        if not decision.allowed:
            logger.info("Administrative write denied path=%s reason=%s", path, decision.reason.value)
            raise PermissionDenied(f"access to {path} denied: {decision.reason.value}")

    if identity is None or identity.priority is None:
        raise PermissionDenied("authentication required")

    if identity.priority < threshold:
        logger.info(
            "Administrative write denied user_id=%s priority=%s threshold=%s",
            identity.user_id,
            identity.priority,
            threshold,
        )
        raise PermissionDenied(f"priority {identity.priority} below administrative threshold {threshold}")

    return identity
