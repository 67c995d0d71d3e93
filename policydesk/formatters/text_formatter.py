from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from policydesk.formatters.base import BaseFormatter, to_plain


class TextFormatter(BaseFormatter):
    """Plain-text rendering: a "Key: value" header block, then the body."""

    def write(self, data: Any, output_path: Path) -> None:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(self.render(data))

    def file_extension(self) -> str:
        return ".txt"

    @staticmethod
    def render(data: Any) -> str:
        if isinstance(data, str):
            return data
        payload: Dict[str, Any] = to_plain(data)
        lines: List[str] = []
        title = str(payload.get("title", ""))
        if title:
            lines.append(title)
            lines.append("=" * len(title))
            lines.append("")
        for key, value in payload.items():
            if key in ("title", "body", "content"):
                continue
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            label = key.replace("_", " ").capitalize()
            lines.append(f"{label}: {value}")
        body = str(payload.get("body", payload.get("content", "")))
        if body:
            lines.append("")
            lines.append(body.rstrip("\n"))
        return "\n".join(lines) + "\n"
