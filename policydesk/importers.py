from __future__ import annotations

import json
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Any, List, Optional

from policydesk.exceptions import ValidationError
from policydesk.html_converter import extract_html_title, html_to_markdown, normalize_headings
from policydesk.metadata import extract_policy_metadata
from policydesk.models.policies import PolicyDraft
from policydesk.splitter import match_heading, physical_lines

DEFAULT_TYPE = "Information Security"
UNTITLED = "Untitled Policy"


def import_policy_file(path: Path) -> PolicyDraft:
    """Read a policy file and build a draft, choosing the parser by suffix."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(f"Cannot read {path}: {exc.strerror or exc}") from exc

    suffix = path.suffix.lower()
    if suffix == ".json":
        return import_json(text)
    if suffix == ".xml":
        return import_xml(text)
    if suffix in (".html", ".htm"):
        return import_html(text)
    return import_text(text, fallback_title=path.stem.replace("_", " ").strip())


def import_json(text: str) -> PolicyDraft:
    try:
        parsed = json.loads(text)
    except ValueError as exc:
        raise ValidationError("Invalid JSON format.") from exc
    if not isinstance(parsed, dict) or not parsed.get("title") or not parsed.get("content"):
        raise ValidationError('JSON must contain at least "title" and "content" fields.')

    tags = parsed.get("tags")
    return _with_metadata(PolicyDraft(
        title=str(parsed["title"]),
        content=str(parsed["content"]),
        type=str(parsed.get("type") or DEFAULT_TYPE),
        description=str(parsed.get("description") or ""),
        tags=[str(t) for t in tags] if isinstance(tags, list) else [],
    ))


def import_xml(text: str) -> PolicyDraft:
    """Build a draft from <title>/<description>/<type>/<content>/<tag> elements.

    Unparsable XML is kept as raw content instead of failing the import.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError:
        return _with_metadata(PolicyDraft(
            title="Imported XML Policy",
            description="Policy imported from XML file",
            type=DEFAULT_TYPE,
            content=text,
            tags=["XML Import"],
        ))

    tags: List[str] = [el.text.strip() for el in root.iter("tag") if el.text and el.text.strip()]
    return _with_metadata(PolicyDraft(
        title=_xml_text(root, "title") or UNTITLED,
        description=_xml_text(root, "description") or "",
        type=_xml_text(root, "type") or DEFAULT_TYPE,
        content=_xml_text(root, "content", strip=False) or text,
        tags=tags,
    ))


def import_html(text: str) -> PolicyDraft:
    content = normalize_headings(html_to_markdown(text), target_min=1)
    title = extract_html_title(text) or _first_heading(content) or UNTITLED
    return _with_metadata(PolicyDraft(title=title, content=content, type=DEFAULT_TYPE))


def import_text(text: str, fallback_title: str = "") -> PolicyDraft:
    title = _first_heading(text) or fallback_title or UNTITLED
    return _with_metadata(PolicyDraft(title=title, content=text, type=DEFAULT_TYPE))


def _with_metadata(draft: PolicyDraft) -> PolicyDraft:
    metadata = extract_policy_metadata(draft.content)
    draft.owner = draft.owner or metadata.owner or ""
    draft.department = draft.department or metadata.department or ""
    draft.reviewer = draft.reviewer or metadata.reviewer or ""
    return draft


def _first_heading(text: str) -> Optional[str]:
    for line in physical_lines(text):
        title = match_heading(line)
        if title:
            return title
    return None


def _xml_text(root: Any, tag: str, strip: bool = True) -> Optional[str]:
    for el in root.iter(tag):
        value = "".join(el.itertext())
        if value.strip():
            return value.strip() if strip else value
    return None
