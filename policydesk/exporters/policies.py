from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from policydesk.exporters.base import BaseExporter
from policydesk.lifecycle import check_version_history
from policydesk.formatters.markdown_formatter import MarkdownFormatter
from policydesk.models.policies import Policy, PolicySection, Version
from policydesk.service import PolicyService
from policydesk.splitter import split_policy_into_sections

_SLUG_RE = re.compile(r"[^a-z0-9]", re.IGNORECASE)
_ID_LENGTH = 8


def export_stem(policy: Policy) -> str:
    """File stem like "access_control_policy_v1.2_3f2a9c1e".

    The suffix is the start of the policy id, so two policies sharing a
    title and version do not overwrite each other.
    """
    title = _SLUG_RE.sub("_", policy.title).lower()
    short_id = _SLUG_RE.sub("", policy.id).lower()[:_ID_LENGTH]
    return f"{title}_v{policy.version:.1f}_{short_id}"


class PoliciesExporter(BaseExporter):
    def __init__(
        self,
        service: PolicyService,
        output_dir: Path,
        *,
        policy_ids: Optional[Sequence[str]] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(service, output_dir, **kwargs)
        self.policy_ids = list(policy_ids or [])

    def export(self) -> None:
        self._ensure_output_dir()
        self._log("Exporting policies...")

        if self.policy_ids:
            policies = [self.service.get_policy(pid) for pid in self.policy_ids]
        else:
            policies = self.service.list_policies()

        stems: List[str] = []
        for policy in policies:
            sections = self.service.get_sections(policy.id)
            if not sections:
                sections = split_policy_into_sections(policy.content)
            versions = self.service.get_versions(policy.id)
            check_version_history(policy, versions)
            stem = export_stem(policy)
            self._export_policy(stem, policy, sections, versions)
            stems.append(stem)

        self._write_index(policies)
        if stems:
            self._log(
                "Exporting policies... "
                + ", ".join(stems)
                + f" done ({len(stems)} documents)"
            )
        else:
            self._log("Exporting policies... done (0 documents)")

    def _export_policy(
        self,
        stem: str,
        policy: Policy,
        sections: List[PolicySection],
        versions: List[Version],
    ) -> None:
        markdown = MarkdownFormatter.render(
            title=policy.title,
            body=self._render_body(policy, sections, versions),
            frontmatter=_frontmatter(policy),
        )
        data: Dict[str, Any] = dict(_frontmatter(policy))
        data["description"] = policy.description
        data["content"] = policy.content
        data["sections"] = sections
        data["versions"] = versions

        text_data: Dict[str, Any] = dict(_frontmatter(policy))
        text_data["content"] = policy.content
        self._write_document(stem, markdown, data, text_data)

    @staticmethod
    def _render_body(
        policy: Policy, sections: List[PolicySection], versions: List[Version],
    ) -> str:
        parts: List[str] = []
        if policy.description:
            parts.append(policy.description)
        for section in sections:
            block = f"## {section.section_number}. {section.title}\n\n{section.content.strip()}"
            if section.compliance_tags:
                block += "\n\n_Compliance: " + ", ".join(section.compliance_tags) + "_"
            parts.append(block)
        if versions:
            history = ["## Version History", ""]
            for version in versions:
                history.append(
                    f"- **{version.label}** ({version.created_at[:10]}, {version.edited_by}): "
                    f"{version.description}"
                )
            parts.append("\n".join(history))
        return "\n\n".join(parts)

    def _write_index(self, policies: List[Policy]) -> None:
        now = datetime.now(timezone.utc)
        frontmatter: Dict[str, Any] = {
            "generated": now.strftime("%Y-%m-%dT%H:%M:%SZ"),
            "document_count": len(policies),
        }
        noun = "policy" if len(policies) == 1 else "policies"
        body: List[str] = [f"{len(policies)} {noun} exported on {now.strftime('%Y-%m-%d')}.", ""]
        for policy in policies:
            stem = export_stem(policy)
            body.append(f"## [{policy.title}]({stem}.md)")
            body.append("")
            body.append(f"- **Status:** {policy.status}")
            body.append(f"- **Version:** {policy.version:.1f}")
            if policy.owner:
                body.append(f"- **Owner:** {policy.owner}")
            if policy.tags:
                body.append(f"- **Tags:** {', '.join(policy.tags)}")
            body.append("")

        content = MarkdownFormatter.render(
            title="Policies", body="\n".join(body), frontmatter=frontmatter,
        )
        self._write_text(self.output_dir / "index.md", content)


def _frontmatter(policy: Policy) -> Dict[str, Any]:
    return {
        "id": policy.id,
        "title": policy.title,
        "status": policy.status,
        "version": f"{policy.version:.1f}",
        "type": policy.type,
        "category": policy.category,
        "author": policy.author,
        "owner": policy.owner,
        "department": policy.department,
        "tags": list(policy.tags),
        "updated": policy.updated_at[:10],
    }
