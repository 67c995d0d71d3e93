from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from policydesk.formatters.base import BaseFormatter, to_plain


class YamlFormatter(BaseFormatter):
    def write(self, data: Any, output_path: Path) -> None:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(self.dumps(data))

    @staticmethod
    def dumps(data: Any) -> str:
        return yaml.safe_dump(
            to_plain(data),
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False,
        )

    def file_extension(self) -> str:
        return ".yaml"
