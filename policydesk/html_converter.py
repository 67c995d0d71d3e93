from __future__ import annotations

import re
from html import unescape
from typing import Optional

import markdownify

from policydesk.splitter import physical_lines

# Rich-text editors insert these as word separators.
_BOLD_NBSP_RE = re.compile(r"<(strong|b)>\s*(&nbsp;|\s)\s*</\1>", re.IGNORECASE)
_TITLE_TAG_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_HEAD_RE = re.compile(r"<head[^>]*>.*?</head>", re.IGNORECASE | re.DOTALL)
_HEADING_RE = re.compile(r"^(#{1,6})\s")


def html_to_markdown(html: str) -> str:
    """Convert an HTML policy document to Markdown with ATX headings."""
    if not html:
        return ""
    html = _BOLD_NBSP_RE.sub(" ", _HEAD_RE.sub("", html))
    md: str = markdownify.markdownify(html, heading_style="ATX")
    md = md.replace("\u00ad", "")
    md = md.replace("\u00a0", " ")
    md = md.replace("&nbsp;", " ")
    md = "\n".join(line.rstrip() for line in physical_lines(md))
    while "\n\n\n" in md:
        md = md.replace("\n\n\n", "\n\n")
    return md.strip()


def extract_html_title(html: str) -> Optional[str]:
    """Return the document <title>, if it has a non-empty one."""
    m = _TITLE_TAG_RE.search(html or "")
    if m is None:
        return None
    title = " ".join(unescape(m.group(1)).split())
    return title or None


def shift_headings(md: str, delta: int) -> str:
    """Shift all markdown heading levels by *delta*, clamped to 1-6."""
    if delta == 0:
        return md

    def _shift(m: re.Match) -> str:  # type: ignore[type-arg]
        level = max(1, min(6, len(m.group(1)) + delta))
        return "#" * level + " "

    result = []
    in_code_fence = False
    for line in physical_lines(md):
        if line.lstrip().startswith("```"):
            in_code_fence = not in_code_fence
        if not in_code_fence:
            line = _HEADING_RE.sub(_shift, line)
        result.append(line)
    return "\n".join(result)


def normalize_headings(md: str, target_min: int = 1) -> str:
    """Shift headings so the highest level present becomes *target_min*.

    Deep HTML headings (h4 and below) would otherwise be read as body text
    by the section splitter.
    """
    levels = []
    in_code_fence = False
    for line in physical_lines(md):
        if line.lstrip().startswith("```"):
            in_code_fence = not in_code_fence
            continue
        m = None if in_code_fence else _HEADING_RE.match(line)
        if m:
            levels.append(len(m.group(1)))
    if not levels:
        return md
    return shift_headings(md, target_min - min(levels))
