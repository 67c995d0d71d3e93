from __future__ import annotations

from collections import Counter
from typing import Iterable, List, Sequence, Tuple

from policydesk.models.policies import Policy


def clean_tags(tags: Iterable[str]) -> List[str]:
    """Strip whitespace, drop blanks and repeats, keep first-seen order."""
    seen: List[str] = []
    for tag in tags:
        text = (tag or "").strip()
        if text and text not in seen:
            seen.append(text)
    return seen


def merge_tags(existing: Sequence[str], new: Iterable[str]) -> List[str]:
    merged = list(existing)
    merged.extend(tag for tag in clean_tags(new) if tag not in existing)
    return merged


def replace_tag(tags: Sequence[str], old: str, new: str) -> List[str]:
    """Replace *old* with *new*, collapsing a duplicate if *new* was present."""
    return clean_tags(new if tag == old else tag for tag in tags)


def tag_counts(policies: Sequence[Policy]) -> List[Tuple[str, int]]:
    """Tags used across *policies*, most used first, ties by name."""
    counts = Counter(tag for policy in policies for tag in policy.tags)
    return sorted(counts.items(), key=lambda item: (-item[1], item[0].lower()))


def policies_with_tag(policies: Sequence[Policy], tag: str) -> List[Policy]:
    return [policy for policy in policies if tag in policy.tags]
