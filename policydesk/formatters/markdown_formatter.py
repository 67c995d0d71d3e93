from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

from policydesk.formatters.base import BaseFormatter, to_plain
from policydesk.formatters.yaml_formatter import YamlFormatter


class MarkdownFormatter(BaseFormatter):
    """Markdown with optional YAML front matter.

    Body lines are written untouched; re-wrapping would split headings
    the section splitter needs to see on re-import.
    """

    def write(self, data: Any, output_path: Path) -> None:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(self._render_data(data))

    def file_extension(self) -> str:
        return ".md"

    @classmethod
    def render(
        cls,
        title: str,
        body: str,
        frontmatter: Optional[Dict[str, Any]] = None,
    ) -> str:
        parts = []
        if frontmatter:
            fm_text = YamlFormatter.dumps(frontmatter).rstrip("\n")
            parts.append(f"---\n{fm_text}\n---\n")
        if title:
            parts.append(f"# {title}\n")
        if body:
            parts.append(body.rstrip("\n") + "\n")
        return "\n".join(parts)

    def _render_data(self, data: Any) -> str:
        if isinstance(data, str):
            return data
        payload = to_plain(data)
        if not isinstance(payload, dict):
            return str(payload)

        title = str(payload.get("title", ""))
        body = str(payload.get("body", payload.get("content", "")))
        excluded = {"title", "body", "content", "frontmatter"}
        frontmatter = payload.get("frontmatter")
        if not isinstance(frontmatter, dict):
            frontmatter = {k: v for k, v in payload.items() if k not in excluded} or None
        return self.render(title=title, body=body, frontmatter=frontmatter)
