from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import List

import pytest

from policydesk import lifecycle
from policydesk.exceptions import (
    InvalidTransitionError,
    PermissionDeniedError,
    ValidationError,
)
from policydesk.models.policies import Actor, Policy, Version

AUTHOR = Actor(user_id="u-author", email="author@example.com", roles=frozenset({"user"}))
REVIEWER = Actor(user_id="u-reviewer", email="reviewer@example.com", roles=frozenset({"reviewer"}))
ADMIN = Actor(user_id="u-admin", email="admin@example.com", roles=frozenset({"admin"}))


def _policy(status: str = "draft", version: str = "1.0") -> Policy:
    return Policy(
        id="p1",
        title="Access Control Policy",
        content="# Scope\nAll staff\n",
        type="Access Control",
        status=status,
        version=Decimal(version),
        author="author@example.com",
    )


def _version(label: str, created_at: str) -> Version:
    return Version(
        version_id=label,
        label=label,
        description="change",
        created_at=created_at,
        edited_by="author@example.com",
    )


class TestVersionNumbering:
    def test_next_version(self) -> None:
        assert lifecycle.next_version(Decimal("1.0")) == Decimal("1.1")

    def test_no_float_drift(self) -> None:
        version = lifecycle.INITIAL_VERSION
        for _ in range(10):
            version = lifecycle.next_version(version)
        assert version == Decimal("2.0")
        assert lifecycle.version_label(version) == "v2.0"

    def test_rolls_over_to_next_major(self) -> None:
        assert lifecycle.version_label(lifecycle.next_version(Decimal("1.9"))) == "v2.0"

    def test_accepts_backend_float(self) -> None:
        assert lifecycle.next_version(1.1) == Decimal("1.2")  # type: ignore[arg-type]

    def test_initial_label(self) -> None:
        assert lifecycle.version_label(lifecycle.INITIAL_VERSION) == "v1.0"
        assert lifecycle.INITIAL_VERSION_DESCRIPTION == "Initial version"

    @pytest.mark.parametrize("label, number", [
        ("v1.0", Decimal("1.0")),
        ("V2.3", Decimal("2.3")),
        ("1.4", Decimal("1.4")),
    ])
    def test_parse_version_label(self, label: str, number: Decimal) -> None:
        assert lifecycle.parse_version_label(label) == number

    def test_parse_bad_label(self) -> None:
        with pytest.raises(ValidationError):
            lifecycle.parse_version_label("vNext")


class TestCheckTransition:
    def test_active_to_review_rejected(self) -> None:
        with pytest.raises(InvalidTransitionError, match="Cannot move policy from 'active' to 'review'"):
            lifecycle.check_transition("active", "review", ADMIN)

    @pytest.mark.parametrize("current, target", [
        ("draft", "approved"),
        ("draft", "active"),
        ("review", "active"),
        ("archived", "active"),
        ("archived", "draft"),
        ("under_review", "approved"),
        ("draft", "draft"),
    ])
    def test_transitions_outside_table_rejected(self, current: str, target: str) -> None:
        with pytest.raises(InvalidTransitionError):
            lifecycle.check_transition(current, target, ADMIN, reviewer_id="r", reason="x")

    def test_error_lists_allowed_targets(self) -> None:
        with pytest.raises(InvalidTransitionError, match="approved, draft"):
            lifecycle.check_transition("review", "archived", ADMIN)

    def test_submit_needs_reviewer(self) -> None:
        with pytest.raises(ValidationError, match="reviewer must be selected"):
            lifecycle.check_transition("draft", "review", AUTHOR, reviewer_id="  ")

    def test_reject_needs_reason(self) -> None:
        with pytest.raises(ValidationError, match="reason for rejection"):
            lifecycle.check_transition("review", "draft", REVIEWER, reason="")

    def test_plain_user_cannot_approve(self) -> None:
        with pytest.raises(PermissionDeniedError, match="admin or reviewer"):
            lifecycle.check_transition("review", "approved", AUTHOR)

    def test_reviewer_cannot_publish(self) -> None:
        with pytest.raises(PermissionDeniedError):
            lifecycle.check_transition("approved", "active", REVIEWER)

    def test_permission_error_is_invalid_transition(self) -> None:
        assert issubclass(PermissionDeniedError, InvalidTransitionError)

    def test_allowed_targets(self) -> None:
        assert lifecycle.allowed_targets("review") == ["approved", "draft"]
        assert lifecycle.allowed_targets("archived") == []


class TestTransitionFields:
    def test_full_workflow(self) -> None:
        policy = _policy("draft")

        fields = lifecycle.transition_fields(policy, "review", AUTHOR, reviewer_id="u-reviewer")
        assert fields == {"status": "review", "reviewer_id": "u-reviewer"}
        policy = replace(policy, status=fields["status"])
        assert policy.status == "review"

        fields = lifecycle.transition_fields(policy, "approved", REVIEWER)
        policy = replace(policy, status=fields["status"])
        assert policy.status == "approved"

        fields = lifecycle.transition_fields(policy, "active", ADMIN)
        policy = replace(policy, status=fields["status"])
        assert policy.status == "active"

        fields = lifecycle.transition_fields(policy, "archived", ADMIN)
        assert fields == {"status": "archived"}

    def test_approve_records_approver(self) -> None:
        now = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)
        fields = lifecycle.transition_fields(_policy("review"), "approved", ADMIN, now=now)
        assert fields == {
            "status": "approved",
            "approved_at": "2026-03-01T09:30:00Z",
            "approved_by": "u-admin",
        }

    def test_reject_records_reason(self) -> None:
        fields = lifecycle.transition_fields(
            _policy("review"), "draft", REVIEWER, reason="  Missing scope  ",
        )
        assert fields == {"status": "draft", "rejection_reason": "Missing scope"}

    def test_invalid_transition_leaves_policy_untouched(self) -> None:
        policy = _policy("active")
        with pytest.raises(InvalidTransitionError):
            lifecycle.transition_fields(policy, "review", ADMIN, reviewer_id="r")
        assert policy.status == "active"


class TestVersionHistory:
    def test_latest_by_creation_time_not_label(self) -> None:
        versions = [
            _version("v1.0", "2026-01-01T10:00:00Z"),
            _version("v1.2", "2026-01-03T10:00:00+00:00"),
            _version("v1.1", "2026-01-02T10:00:00Z"),
        ]
        assert lifecycle.latest_version(versions).label == "v1.2"  # type: ignore[union-attr]
        assert [v.label for v in lifecycle.sort_versions(versions)] == ["v1.2", "v1.1", "v1.0"]

    def test_latest_of_empty(self) -> None:
        assert lifecycle.latest_version([]) is None

    def test_consistent_history(self) -> None:
        versions = [
            _version("v1.0", "2026-01-01T10:00:00Z"),
            _version("v1.1", "2026-01-02T10:00:00Z"),
        ]
        assert lifecycle.check_version_history(_policy(version="1.1"), versions) is True

    def test_inconsistent_history_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        versions = [_version("v1.0", "2026-01-01T10:00:00Z")]
        with caplog.at_level("WARNING"):
            assert lifecycle.check_version_history(_policy(version="1.1"), versions) is False
        assert "newest version record is v1.0" in caplog.text

    def test_no_versions_is_inconsistent(self) -> None:
        assert lifecycle.check_version_history(_policy(), []) is False

    def test_short_fractional_seconds_order(self) -> None:
        versions = [
            _version("v1.0", "2026-03-01T10:00:00.45+00:00"),
            _version("v1.1", "2026-03-01T10:00:00.5+00:00"),
            _version("v1.2", "2026-03-01T10:00:00.50001Z"),
        ]
        assert [v.label for v in lifecycle.sort_versions(versions)] == ["v1.2", "v1.1", "v1.0"]

    def test_fraction_padded_not_floored(self) -> None:
        parsed = lifecycle._timestamp("2026-03-01 10:00:00.5+00:00")
        assert parsed == datetime(2026, 3, 1, 10, 0, 0, 500000, tzinfo=timezone.utc)

    def test_long_fraction_truncated(self) -> None:
        parsed = lifecycle._timestamp("2026-03-01T10:00:00.1234567Z")
        assert parsed.microsecond == 123456


class TestVisiblePolicies:
    def _policies(self) -> List[Policy]:
        return [
            replace(_policy(status="draft"), id="p1"),
            replace(_policy(status="review"), id="p2"),
            replace(_policy(status="active"), id="p3"),
            replace(_policy(status="archived"), id="p4"),
        ]

    def test_archived_hidden_by_default(self) -> None:
        assert [p.id for p in lifecycle.visible_policies(self._policies())] == ["p1", "p2", "p3"]

    def test_archived_listed_on_request(self) -> None:
        assert [p.id for p in lifecycle.visible_policies(self._policies(), "archived")] == ["p4"]

    @pytest.mark.parametrize("status", ["review", "under_review", " Under_Review "])
    def test_under_review_is_review(self, status: str) -> None:
        assert [p.id for p in lifecycle.visible_policies(self._policies(), status)] == ["p2"]

    def test_stored_under_review_matches_review(self) -> None:
        policies = [replace(_policy(status="under_review"), id="p9")]
        assert [p.id for p in lifecycle.visible_policies(policies, "review")] == ["p9"]

    def test_unknown_status_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Unknown status 'pending'"):
            lifecycle.visible_policies(self._policies(), "pending")

    def test_normalize_status(self) -> None:
        assert lifecycle.normalize_status("UNDER_REVIEW") == "review"
        assert lifecycle.normalize_status("Active") == "active"
