from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict

import pytest

from policydesk.exceptions import ValidationError
from policydesk.models.policies import (
    Actor,
    parse_framework,
    parse_policy,
    parse_section,
    parse_version,
    parse_version_number,
)


def _policy_row(**overrides: Any) -> Dict[str, Any]:
    row: Dict[str, Any] = {
        "id": "p1",
        "title": "Access Control Policy",
        "description": None,
        "content": "# Scope\nAll staff\n",
        "type": "Access Control",
        "category": "Technical Control",
        "status": "draft",
        "version": 1.1,
        "tags": ["Access Control"],
        "author": "author@example.com",
        "owner": None,
        "reviewer_id": None,
        "created_at": "2026-01-01T10:00:00Z",
        "updated_at": "2026-01-02T10:00:00Z",
    }
    row.update(overrides)
    return row


class TestParsePolicy:
    def test_valid_row(self) -> None:
        policy = parse_policy(_policy_row())
        assert policy.id == "p1"
        assert policy.version == Decimal("1.1")
        assert policy.description == ""
        assert policy.owner == ""
        assert policy.tags == ["Access Control"]
        assert policy.reviewer_id is None

    def test_null_tags_become_empty(self) -> None:
        assert parse_policy(_policy_row(tags=None)).tags == []

    def test_not_an_object(self) -> None:
        with pytest.raises(ValidationError, match="expected an object"):
            parse_policy(["p1"])

    @pytest.mark.parametrize("key", ["id", "title", "type", "status"])
    def test_missing_required_field(self, key: str) -> None:
        row = _policy_row()
        del row[key]
        with pytest.raises(ValidationError, match=f"missing or empty '{key}'"):
            parse_policy(row)

    def test_unknown_status(self) -> None:
        with pytest.raises(ValidationError, match="unknown status 'published'"):
            parse_policy(_policy_row(status="published"))

    @pytest.mark.parametrize("version", [None, "abc", True, -1])
    def test_bad_version(self, version: Any) -> None:
        with pytest.raises(ValidationError):
            parse_policy(_policy_row(version=version))

    def test_tags_must_be_strings(self) -> None:
        with pytest.raises(ValidationError, match="'tags' must be a list of strings"):
            parse_policy(_policy_row(tags=[1, 2]))

    def test_content_must_be_string(self) -> None:
        with pytest.raises(ValidationError, match="'content' must be a string"):
            parse_policy(_policy_row(content=42))


class TestParseVersionNumber:
    def test_float_is_rounded_to_one_decimal(self) -> None:
        assert parse_version_number(1.2000000000000002) == Decimal("1.2")

    def test_string(self) -> None:
        assert parse_version_number("2") == Decimal("2.0")


class TestParseOtherRecords:
    def test_version(self) -> None:
        version = parse_version({
            "version_id": "v-1",
            "policy_id": "p1",
            "version_label": "v1.0",
            "description": "Initial version",
            "created_at": "2026-01-01T10:00:00Z",
            "edited_by": "author@example.com",
        })
        assert version.label == "v1.0"
        assert version.description == "Initial version"

    def test_version_missing_label(self) -> None:
        with pytest.raises(ValidationError, match="version_label"):
            parse_version({"version_id": "v-1", "created_at": "2026-01-01"})

    def test_section(self) -> None:
        section = parse_section({
            "section_number": 2,
            "section_title": "Scope",
            "section_content": "All staff\n",
            "compliance_tags": ["ISO27001-A.9"],
        })
        assert section.section_number == 2
        assert section.compliance_tags == ["ISO27001-A.9"]

    @pytest.mark.parametrize("number", [0, -1, "1", None, True])
    def test_section_bad_number(self, number: Any) -> None:
        with pytest.raises(ValidationError, match="section_number"):
            parse_section({"section_number": number, "section_title": "Scope"})

    def test_framework_keeps_missing_keywords_as_none(self) -> None:
        framework = parse_framework({
            "framework_name": "ISO27001",
            "control_id": "A.9",
            "keywords": None,
            "framework_category": "technical",
        })
        assert framework.keywords is None
        assert framework.category == "technical"

    def test_framework_missing_name(self) -> None:
        with pytest.raises(ValidationError, match="framework_name"):
            parse_framework({"control_id": "A.9", "keywords": []})


class TestActor:
    def test_has_any_role(self) -> None:
        actor = Actor(user_id="u1", roles=frozenset({"reviewer"}))
        assert actor.has_any_role("admin", "reviewer") is True
        assert actor.has_any_role("admin") is False
