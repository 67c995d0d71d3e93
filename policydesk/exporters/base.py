from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from policydesk.formatters.json_formatter import JsonFormatter
from policydesk.formatters.markdown_formatter import MarkdownFormatter
from policydesk.formatters.text_formatter import TextFormatter
from policydesk.formatters.yaml_formatter import YamlFormatter
from policydesk.service import PolicyService


class BaseExporter(ABC):
    def __init__(
        self,
        service: PolicyService,
        output_dir: Path,
        *,
        force: bool = False,
        keep_raw_json: bool = False,
        plain_text: bool = False,
    ) -> None:
        self.service = service
        self.output_dir = output_dir
        self.force = force
        self.keep_raw_json = keep_raw_json
        self.plain_text = plain_text
        self._overwrite_all = False
        self._md_formatter = MarkdownFormatter()
        self._json_formatter = JsonFormatter()
        self._yaml_formatter = YamlFormatter()
        self._text_formatter = TextFormatter()

    @abstractmethod
    def export(self) -> None:
        """Fetch data from the store and write it to output_dir."""
        ...

    def _ensure_output_dir(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _log(self, message: str) -> None:
        print(message)

    def _should_write(self, path: Path) -> bool:
        """Check whether *path* should be written, prompting if needed."""
        if not path.exists():
            return True
        if self.force or self._overwrite_all:
            return True
        while True:
            answer = input(
                f"Overwrite existing {path.name}? [Yes/No/All] "
            ).strip().lower()
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False
            if answer in ("a", "all"):
                self._overwrite_all = True
                return True

    def _write_text(self, path: Path, content: str) -> None:
        if self._should_write(path):
            with open(path, "w", encoding="utf-8") as f:
                f.write(content)

    def _write_document(
        self, name: str, markdown: str, data: Any, text_data: Any = None,
    ) -> None:
        """Write the Markdown rendering plus YAML, and JSON/text when asked."""
        self._write_text(self.output_dir / (name + ".md"), markdown)

        yaml_path = self.output_dir / (name + ".yaml")
        if self._should_write(yaml_path):
            self._yaml_formatter.write(data, yaml_path)

        if self.keep_raw_json:
            json_path = self.output_dir / (name + ".json")
            if self._should_write(json_path):
                self._json_formatter.write(data, json_path)

        if self.plain_text:
            text_path = self.output_dir / (name + ".txt")
            if self._should_write(text_path):
                self._text_formatter.write(data if text_data is None else text_data, text_path)
