from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

_SCAN_LINES = 20


@dataclass
class PolicyMetadata:
    owner: Optional[str] = None
    department: Optional[str] = None
    reviewer: Optional[str] = None


def extract_policy_metadata(content: str) -> PolicyMetadata:
    """Pick owner, department and reviewer out of a policy's header lines.

    Only the first 20 lines are read. The value is the text between the
    first and second colon of the matching line; later lines win.
    """
    metadata = PolicyMetadata()
    if not content:
        return metadata

    for line in content.split("\n")[:_SCAN_LINES]:
        lower = line.lower()
        if "owner:" in lower:
            metadata.owner = _field_value(line) or metadata.owner
        if "department:" in lower:
            metadata.department = _field_value(line) or metadata.department
        if "reviewer:" in lower or "reviewed by:" in lower:
            metadata.reviewer = _field_value(line) or metadata.reviewer
    return metadata


def _field_value(line: str) -> Optional[str]:
    parts = line.split(":")
    if len(parts) < 2:
        return None
    value = parts[1].strip()
    return value or None
