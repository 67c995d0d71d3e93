from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

from policydesk.exceptions import (
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from policydesk.models.policies import (
    STATUSES,
    Actor,
    Policy,
    Version,
    parse_version_number,
)

logger = logging.getLogger(__name__)

DRAFT = "draft"
REVIEW = "review"
APPROVED = "approved"
ACTIVE = "active"
ARCHIVED = "archived"
# Filter-only synonym of REVIEW; no transition leads here.
UNDER_REVIEW = "under_review"

INITIAL_VERSION = Decimal("1.0")
INITIAL_VERSION_DESCRIPTION = "Initial version"
DEFAULT_CHANGE_DESCRIPTION = "Policy updated"
_VERSION_STEP = Decimal("0.1")
# PostgREST trims trailing zeros from fractional seconds.
_FRACTION_RE = re.compile(r"([T ]\d{2}:\d{2}:\d{2})\.(\d+)")

_ANYONE: FrozenSet[str] = frozenset()
_REVIEWERS: FrozenSet[str] = frozenset({"reviewer", "admin"})
_ADMINS: FrozenSet[str] = frozenset({"admin"})


@dataclass(frozen=True)
class Transition:
    action: str
    source: str
    target: str
    allowed_roles: FrozenSet[str]


TRANSITIONS: Dict[Tuple[str, str], Transition] = {
    (DRAFT, REVIEW): Transition("submit", DRAFT, REVIEW, _ANYONE),
    (REVIEW, APPROVED): Transition("approve", REVIEW, APPROVED, _REVIEWERS),
    (REVIEW, DRAFT): Transition("reject", REVIEW, DRAFT, _REVIEWERS),
    (APPROVED, ACTIVE): Transition("publish", APPROVED, ACTIVE, _ADMINS),
    (ACTIVE, ARCHIVED): Transition("archive", ACTIVE, ARCHIVED, _ADMINS),
}


def normalize_status(status: str) -> str:
    """Lower-case *status* and fold ``under_review`` into ``review``."""
    text = (status or "").strip().lower()
    return REVIEW if text == UNDER_REVIEW else text


def visible_policies(
    policies: Sequence[Policy], status: Optional[str] = None,
) -> List[Policy]:
    """Policies for a listing: those in *status*, or all but archived ones."""
    if status is None:
        return [p for p in policies if p.status != ARCHIVED]
    wanted = normalize_status(status)
    if wanted not in STATUSES:
        raise ValidationError(
            f"Unknown status '{status}'. Choose from: {', '.join(STATUSES)}."
        )
    return [p for p in policies if normalize_status(p.status) == wanted]


def allowed_targets(status: str) -> List[str]:
    return [target for (source, target) in TRANSITIONS if source == status]


def check_transition(
    current: str,
    target: str,
    actor: Actor,
    *,
    reviewer_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> Transition:
    """Validate a status change and return the matching transition.

    Raises InvalidTransitionError for a move that is not in the table,
    PermissionDeniedError when *actor* lacks the role, and ValidationError
    when a submission has no reviewer or a rejection has no reason.
    """
    transition = TRANSITIONS.get((current, target))
    if transition is None:
        allowed = ", ".join(allowed_targets(current)) or "none"
        raise InvalidTransitionError(
            f"Cannot move policy from '{current}' to '{target}'. "
            f"Allowed from '{current}': {allowed}."
        )
    if transition.allowed_roles and not actor.has_any_role(*transition.allowed_roles):
        roles = " or ".join(sorted(transition.allowed_roles))
        raise PermissionDeniedError(
            f"Only {roles} users may {transition.action} a policy."
        )
    if transition.action == "submit" and not (reviewer_id or "").strip():
        raise ValidationError("A reviewer must be selected before submitting for review.")
    if transition.action == "reject" and not (reason or "").strip():
        raise ValidationError("Please provide a reason for rejection.")
    return transition


def transition_fields(
    policy: Policy,
    target: str,
    actor: Actor,
    *,
    reviewer_id: Optional[str] = None,
    reason: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, object]:
    """Return the policy fields to write for moving *policy* to *target*."""
    transition = check_transition(
        policy.status, target, actor, reviewer_id=reviewer_id, reason=reason,
    )
    fields: Dict[str, object] = {"status": transition.target}
    if transition.action == "submit":
        fields["reviewer_id"] = (reviewer_id or "").strip()
    elif transition.action == "approve":
        moment = now or datetime.now(timezone.utc)
        fields["approved_at"] = moment.strftime("%Y-%m-%dT%H:%M:%SZ")
        fields["approved_by"] = actor.user_id
    elif transition.action == "reject":
        fields["rejection_reason"] = (reason or "").strip()
    return fields


def next_version(current: Decimal) -> Decimal:
    return (parse_version_number(current) + _VERSION_STEP).quantize(_VERSION_STEP)


def version_label(version: Decimal) -> str:
    return f"v{parse_version_number(version):.1f}"


def parse_version_label(label: str) -> Decimal:
    """Turn "v1.2" into Decimal("1.2")."""
    text = (label or "").strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    return parse_version_number(text)


def latest_version(versions: Sequence[Version]) -> Optional[Version]:
    """Most recently created version; labels are not consulted."""
    if not versions:
        return None
    return max(versions, key=lambda v: _timestamp(v.created_at))


def sort_versions(versions: Sequence[Version]) -> List[Version]:
    return sorted(versions, key=lambda v: _timestamp(v.created_at), reverse=True)


def check_version_history(policy: Policy, versions: Sequence[Version]) -> bool:
    latest = latest_version(versions)
    if latest is None:
        logger.warning("Policy %s has no version records", policy.id)
        return False
    try:
        latest_number = parse_version_label(latest.label)
    except ValidationError:
        logger.warning("Policy %s has unparsable version label %r", policy.id, latest.label)
        return False
    if latest_number != policy.version:
        logger.warning(
            "Policy %s is at version %s but its newest version record is %s",
            policy.id, policy.version, latest.label,
        )
        return False
    return True


def _timestamp(value: str) -> datetime:
    text = (value or "").strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION_RE.sub(_pad_fraction, text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return datetime.min.replace(tzinfo=timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _pad_fraction(m: re.Match) -> str:  # type: ignore[type-arg]
    return f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}"
