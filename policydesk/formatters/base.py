from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, is_dataclass
from decimal import Decimal
from pathlib import Path
from typing import Any


class BaseFormatter(ABC):
    @abstractmethod
    def write(self, data: Any, output_path: Path) -> None:
        ...

    @abstractmethod
    def file_extension(self) -> str:
        ...


def to_plain(data: Any) -> Any:
    """Turn dataclasses and Decimals into JSON/YAML-safe builtins."""
    if is_dataclass(data) and not isinstance(data, type):
        data = asdict(data)
    if isinstance(data, dict):
        return {str(k): to_plain(v) for k, v in data.items()}
    if isinstance(data, (list, tuple, set, frozenset)):
        items = sorted(data) if isinstance(data, (set, frozenset)) else data
        return [to_plain(v) for v in items]
    if isinstance(data, Decimal):
        return f"{data:.1f}"
    return data
