from __future__ import annotations

from typing import Dict

DEFAULT_CATEGORY = "Technical Control"

CATEGORY_BY_TYPE: Dict[str, str] = {
    "Access Control": "Technical Control",
    "Data Classification": "Technical Control",
    "Network Security": "Technical Control",
    "Incident Management": "Organizational Control",
    "Asset Management": "Physical Control",
    "Business Continuity": "Organizational Control",
    "Acceptable Use": "Organizational Control",
    "Information Security": "Organizational Control",
}


def category_for_type(policy_type: str) -> str:
    return CATEGORY_BY_TYPE.get(policy_type, DEFAULT_CATEGORY)


def fuzzy_match(query: str, text: str) -> bool:
    """True if every character of *query* appears in *text* in order."""
    if not query:
        return True
    query_lower = query.lower()
    idx = 0
    for ch in (text or "").lower():
        if ch == query_lower[idx]:
            idx += 1
            if idx == len(query_lower):
                return True
    return False
