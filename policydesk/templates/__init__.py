"""Starter policies shipped with the package, one YAML file per template."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

import yaml

from policydesk.exceptions import ValidationError
from policydesk.models.policies import PolicyDraft

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent
TEMPLATE_TAG = "Template"


@dataclass
class PolicyTemplate:
    id: str
    title: str
    description: str
    content: str
    type: str
    source: str
    tags: List[str] = field(default_factory=list)


def load_templates(directory: Optional[Path] = None) -> List[PolicyTemplate]:
    """Read every ``*.yaml`` template in *directory*, ordered by title."""
    templates = [_load(path) for path in sorted((directory or TEMPLATE_DIR).glob("*.yaml"))]
    logger.debug("Loaded %d policy templates", len(templates))
    return sorted(templates, key=lambda t: t.title.lower())


def get_template(template_id: str, directory: Optional[Path] = None) -> PolicyTemplate:
    for template in load_templates(directory):
        if template.id == template_id:
            return template
    raise ValidationError(f"Unknown template '{template_id}'.")


def draft_from_template(template: PolicyTemplate) -> PolicyDraft:
    """A draft policy carrying the template's tags plus its origin."""
    tags = list(template.tags)
    for extra in (TEMPLATE_TAG, template.source):
        if extra and extra not in tags:
            tags.append(extra)
    return PolicyDraft(
        title=template.title,
        content=template.content,
        type=template.type,
        description=template.description,
        tags=tags,
        status="draft",
    )


def _load(path: Path) -> PolicyTemplate:
    try:
        raw: Any = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ValidationError(f"Cannot read template {path.name}.") from exc
    if not isinstance(raw, dict):
        raise ValidationError(f"Template {path.name} must be a mapping.")
    values = {}
    for key in ("id", "title", "content", "type"):
        value = raw.get(key)
        if not isinstance(value, str) or not value.strip():
            raise ValidationError(f"Template {path.name} is missing '{key}'.")
        values[key] = value
    tags = raw.get("tags") or []
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise ValidationError(f"Template {path.name}: 'tags' must be a list of strings.")
    return PolicyTemplate(
        description=str(raw.get("description") or ""),
        source=str(raw.get("source") or ""),
        tags=list(tags),
        **values,
    )
