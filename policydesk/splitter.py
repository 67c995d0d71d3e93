from __future__ import annotations

import re
from typing import List, Optional

from policydesk.models.policies import PolicySection

INTRODUCTION_TITLE = "Introduction"
FALLBACK_TITLE = "Policy Content"

# "# Title" to "### Title"; four or more hashes are body text.
_MARKDOWN_HEADING_RE = re.compile(r"^(#{1,3})\s+(.+)$")
# "1. Title", "2.3. Title"; the numeric prefix must end with a dot.
_NUMBERED_HEADING_RE = re.compile(r"^([0-9]+(?:\.[0-9]+)*)\.\s+(.+)$")


def physical_lines(content: str) -> List[str]:
    """Split on line feeds only, dropping a trailing carriage return per line.

    Form feeds, vertical tabs and Unicode line separators stay inside
    their line.
    """
    lines = content.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


def match_heading(line: str) -> Optional[str]:
    """Return the heading title if *line* is a section heading, else None.

    The markdown form is tried first; the numbered form only when it fails.
    """
    stripped = line.strip()
    m = _MARKDOWN_HEADING_RE.match(stripped)
    if m is None:
        m = _NUMBERED_HEADING_RE.match(stripped)
    if m is None:
        return None
    return m.group(2).strip()


def split_policy_into_sections(content: str) -> List[PolicySection]:
    """Split policy text into numbered, titled sections.

    Section numbers follow heading order and are not renumbered when a
    heading without body text is dropped. Text that precedes the first
    heading becomes an "Introduction" section. A document without any
    usable heading comes back as a single "Policy Content" section holding
    the input verbatim. Never raises for odd formatting.
    """
    if not content or not content.strip():
        return []

    sections: List[PolicySection] = []
    current: Optional[PolicySection] = None
    counter = 0
    saw_heading = False

    for line in physical_lines(content):
        title = match_heading(line)
        if title is not None:
            saw_heading = True
            if current is not None and current.content.strip():
                sections.append(current)
            counter += 1
            current = PolicySection(section_number=counter, title=title, content="")
        elif current is not None:
            current.content += line + "\n"
        elif line.strip() and counter == 0:
            counter = 1
            current = PolicySection(
                section_number=counter,
                title=INTRODUCTION_TITLE,
                content=line + "\n",
            )

    if current is not None and current.content.strip():
        sections.append(current)

    if not saw_heading or not sections:
        return [PolicySection(section_number=1, title=FALLBACK_TITLE, content=content)]
    return sections
