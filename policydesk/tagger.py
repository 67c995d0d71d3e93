from __future__ import annotations

from typing import Iterable, List, Sequence

from policydesk.models.policies import ComplianceFramework, PolicySection


def framework_tag(framework: ComplianceFramework) -> str:
    return f"{framework.framework_name}-{framework.control_id}"


def auto_tag_section(
    section_content: str, frameworks: Iterable[ComplianceFramework],
) -> List[str]:
    """Return one tag per framework whose keywords occur in the text.

    Matching is a case-insensitive substring test. Frameworks without
    keywords never match. Tags keep the order of *frameworks*.
    """
    content_lower = (section_content or "").lower()
    tags: List[str] = []
    for framework in frameworks:
        keywords = framework.keywords or []
        if any(k and k.lower() in content_lower for k in keywords if isinstance(k, str)):
            tags.append(framework_tag(framework))
    return tags


def tag_sections(
    sections: Sequence[PolicySection], frameworks: Sequence[ComplianceFramework],
) -> List[PolicySection]:
    """Return copies of *sections* with compliance tags filled in."""
    return [
        PolicySection(
            section_number=section.section_number,
            title=section.title,
            content=section.content,
            compliance_tags=auto_tag_section(section.content, frameworks),
        )
        for section in sections
    ]
