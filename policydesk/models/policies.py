from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, List, Optional

from policydesk.exceptions import ValidationError

STATUSES = ("draft", "review", "approved", "active", "archived", "under_review")


@dataclass
class PolicySection:
    section_number: int
    title: str
    content: str
    compliance_tags: List[str] = field(default_factory=list)


@dataclass
class ComplianceFramework:
    framework_name: str
    control_id: str
    keywords: Optional[List[str]] = None
    category: str = ""
    description: str = ""


@dataclass
class Version:
    version_id: str
    label: str
    description: str
    created_at: str
    edited_by: str


@dataclass
class Policy:
    id: str
    title: str
    content: str
    type: str
    status: str
    version: Decimal
    description: str = ""
    tags: List[str] = field(default_factory=list)
    category: str = ""
    author: str = ""
    owner: str = ""
    department: str = ""
    reviewer_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class PolicyDraft:
    """Fields supplied by an author for a policy that does not exist yet."""

    title: str
    content: str
    type: str
    description: str = ""
    tags: List[str] = field(default_factory=list)
    status: str = "draft"
    owner: str = ""
    department: str = ""
    reviewer: str = ""


@dataclass(frozen=True)
class Actor:
    user_id: str
    email: str = ""
    roles: FrozenSet[str] = frozenset()

    def has_any_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)


def parse_policy(record: Any) -> Policy:
    row = _require_mapping(record, "policy")
    status = _require_str(row, "status", "policy")
    if status not in STATUSES:
        raise ValidationError(f"Invalid policy record: unknown status '{status}'.")
    return Policy(
        id=_require_str(row, "id", "policy"),
        title=_require_str(row, "title", "policy"),
        content=_optional_str(row, "content"),
        type=_require_str(row, "type", "policy"),
        status=status,
        version=parse_version_number(row.get("version")),
        description=_optional_str(row, "description"),
        tags=_str_list(row.get("tags"), "tags"),
        category=_optional_str(row, "category"),
        author=_optional_str(row, "author"),
        owner=_optional_str(row, "owner"),
        department=_optional_str(row, "department"),
        reviewer_id=row.get("reviewer_id") or None,
        rejection_reason=row.get("rejection_reason") or None,
        created_at=_optional_str(row, "created_at"),
        updated_at=_optional_str(row, "updated_at"),
    )


def parse_version(record: Any) -> Version:
    row = _require_mapping(record, "version")
    return Version(
        version_id=_require_str(row, "version_id", "version"),
        label=_require_str(row, "version_label", "version"),
        description=_optional_str(row, "description"),
        created_at=_require_str(row, "created_at", "version"),
        edited_by=_optional_str(row, "edited_by"),
    )


def parse_section(record: Any) -> PolicySection:
    row = _require_mapping(record, "section")
    number = row.get("section_number")
    if not isinstance(number, int) or isinstance(number, bool) or number < 1:
        raise ValidationError("Invalid section record: 'section_number' must be a positive integer.")
    return PolicySection(
        section_number=number,
        title=_require_str(row, "section_title", "section"),
        content=_optional_str(row, "section_content"),
        compliance_tags=_str_list(row.get("compliance_tags"), "compliance_tags"),
    )


def parse_framework(record: Any) -> ComplianceFramework:
    row = _require_mapping(record, "framework")
    keywords = row.get("keywords")
    return ComplianceFramework(
        framework_name=_require_str(row, "framework_name", "framework"),
        control_id=_require_str(row, "control_id", "framework"),
        keywords=None if keywords is None else _str_list(keywords, "keywords"),
        category=_optional_str(row, "framework_category"),
        description=_optional_str(row, "control_description"),
    )


def parse_version_number(value: Any) -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationError("Invalid policy record: 'version' must be numeric.")
    try:
        number = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid policy record: 'version' must be numeric, got {value!r}.") from exc
    if not number.is_finite() or number < 0:
        raise ValidationError(f"Invalid policy record: 'version' must be a non-negative number, got {value!r}.")
    return number.quantize(Decimal("0.1"))


def _require_mapping(record: Any, kind: str) -> Dict[str, Any]:
    if not isinstance(record, dict):
        raise ValidationError(f"Invalid {kind} record: expected an object, got {type(record).__name__}.")
    return record


def _require_str(row: Dict[str, Any], key: str, kind: str) -> str:
    value = row.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {kind} record: missing or empty '{key}'.")
    return value


def _optional_str(row: Dict[str, Any], key: str) -> str:
    value = row.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"Invalid record: '{key}' must be a string.")
    return value


def _str_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError(f"Invalid record: '{key}' must be a list of strings.")
    return list(value)
