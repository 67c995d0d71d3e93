from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Any, Dict, List, Mapping, Optional, Sequence

from policydesk import lifecycle
from policydesk.catalog import category_for_type
from policydesk.client import PolicyStoreClient
from policydesk.exceptions import PersistenceError, ValidationError
from policydesk.models.policies import (
    Actor,
    Policy,
    PolicyDraft,
    PolicySection,
    Version,
    parse_framework,
    parse_policy,
    parse_section,
    parse_version,
)
from policydesk.notifications import PolicyNotifier
from policydesk.splitter import split_policy_into_sections
from policydesk.tagger import tag_sections
from policydesk.tags import clean_tags, merge_tags, policies_with_tag, replace_tag
from policydesk.templates import PolicyTemplate, draft_from_template

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("title", "description", "content", "type", "tags", "department", "owner")
_REQUIRED_FIELDS = ("title", "content", "type")


class PolicyService:
    """Mutation paths for policies over an injected store and notifier.

    Primary writes propagate PersistenceError. Secondary effects (version
    row on create, tag links, sections) are logged when they fail.
    """

    def __init__(
        self, store: PolicyStoreClient, notifier: Optional[PolicyNotifier] = None,
    ) -> None:
        self.store = store
        self.notifier = notifier

    def create_policy(self, draft: PolicyDraft, actor: Actor) -> Policy:
        for name in _REQUIRED_FIELDS:
            if not str(getattr(draft, name) or "").strip():
                raise ValidationError(f"Policy {name} is required.")

        author = actor.email or "Unknown"
        row = {
            "title": draft.title,
            "description": draft.description or None,
            "content": draft.content,
            "type": draft.type,
            "category": category_for_type(draft.type),
            "tags": list(draft.tags),
            "status": draft.status or lifecycle.DRAFT,
            "version": float(lifecycle.INITIAL_VERSION),
            "created_by": actor.user_id,
            "updated_by": actor.user_id,
            "author": author,
        }
        if draft.owner:
            row["owner"] = draft.owner
        if draft.department:
            row["department"] = draft.department
        policy = parse_policy(self.store.insert_policy(row))

        try:
            self.store.insert_version(
                policy.id,
                lifecycle.version_label(lifecycle.INITIAL_VERSION),
                lifecycle.INITIAL_VERSION_DESCRIPTION,
                author,
            )
        except PersistenceError as exc:
            logger.error("Error creating initial version for policy %s: %s", policy.id, exc)

        if draft.tags:
            self._link_tags(policy.id, draft.tags)
        self._resplit_quietly(policy.id, policy.content)
        return policy

    def update_policy(
        self,
        policy_id: str,
        changes: Mapping[str, Any],
        actor: Actor,
        change_description: Optional[str] = None,
    ) -> Policy:
        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(unknown)}.")
        for name in _REQUIRED_FIELDS:
            if name in changes and not str(changes[name] or "").strip():
                raise ValidationError(f"Policy {name} cannot be empty.")
        if change_description is None:
            change_description = lifecycle.DEFAULT_CHANGE_DESCRIPTION
        elif not change_description.strip():
            raise ValidationError("Change description cannot be empty.")

        current = parse_policy(self.store.get_policy(policy_id))
        new_version = lifecycle.next_version(current.version)

        fields: Dict[str, Any] = dict(changes)
        if "type" in fields:
            fields["category"] = category_for_type(fields["type"])
        fields["updated_by"] = actor.user_id
        fields["version"] = float(new_version)

        # Version row first so a committed policy version always has a record.
        self.store.insert_version(
            policy_id,
            lifecycle.version_label(new_version),
            change_description.strip(),
            actor.email or "Unknown",
        )
        updated = parse_policy(self.store.update_policy(policy_id, fields))

        if "content" in changes and changes["content"] != current.content:
            self._resplit_quietly(policy_id, updated.content)
        if "tags" in changes:
            self._link_tags(policy_id, list(changes["tags"] or []))
        return updated

    def delete_policy(self, policy_id: str) -> None:
        self.store.delete_policy(policy_id)

    def get_policy(self, policy_id: str) -> Policy:
        return parse_policy(self.store.get_policy(policy_id))

    def list_policies(self) -> List[Policy]:
        return [parse_policy(row) for row in self.store.list_policies()]

    def get_versions(self, policy_id: str) -> List[Version]:
        return lifecycle.sort_versions(
            [parse_version(row) for row in self.store.list_versions(policy_id)]
        )

    def get_sections(self, policy_id: str) -> List[PolicySection]:
        return [parse_section(row) for row in self.store.list_sections(policy_id)]

    def resplit_sections(self, policy_id: str, content: str) -> List[PolicySection]:
        """Split, tag and store sections, replacing whatever was there."""
        frameworks = [parse_framework(row) for row in self.store.list_frameworks()]
        sections = tag_sections(split_policy_into_sections(content), frameworks)
        self.store.replace_sections(policy_id, [_section_row(s) for s in sections])
        logger.debug("Stored %d sections for policy %s", len(sections), policy_id)
        return sections

    # -- batch and tag maintenance ------------------------------------------

    def add_tags(self, policy_ids: Sequence[str], tags: Sequence[str], actor: Actor) -> List[Policy]:
        """Add *tags* to each policy, skipping policies that already carry them."""
        new_tags = clean_tags(tags)
        if not new_tags:
            raise ValidationError("At least one tag is required.")
        updated = []
        for policy_id in policy_ids:
            policy = self.get_policy(policy_id)
            merged = merge_tags(policy.tags, new_tags)
            if merged == policy.tags:
                logger.debug("Policy %s already has tags %s", policy_id, new_tags)
                continue
            updated.append(self.update_policy(
                policy_id, {"tags": merged}, actor,
                change_description=f"Added tags: {', '.join(new_tags)}",
            ))
        return updated

    def set_type(self, policy_ids: Sequence[str], policy_type: str, actor: Actor) -> List[Policy]:
        """Move each policy to *policy_type*; the category follows the type."""
        policy_type = (policy_type or "").strip()
        if not policy_type:
            raise ValidationError("Policy type cannot be empty.")
        updated = []
        for policy_id in policy_ids:
            if self.get_policy(policy_id).type == policy_type:
                continue
            updated.append(self.update_policy(
                policy_id, {"type": policy_type}, actor,
                change_description=f"Type changed to {policy_type}",
            ))
        return updated

    def rename_tag(self, old: str, new: str, actor: Actor) -> List[Policy]:
        new = (new or "").strip()
        if not new:
            raise ValidationError("New tag name cannot be empty.")
        if new == old:
            return []
        policies = self.list_policies()
        if any(new in policy.tags for policy in policies):
            raise ValidationError(f"Tag '{new}' already exists.")
        return [
            self.update_policy(
                policy.id, {"tags": replace_tag(policy.tags, old, new)}, actor,
                change_description=f"Renamed tag {old} to {new}",
            )
            for policy in policies_with_tag(policies, old)
        ]

    def remove_tag(self, tag: str, actor: Actor) -> List[Policy]:
        return [
            self.update_policy(
                policy.id, {"tags": [t for t in policy.tags if t != tag]}, actor,
                change_description=f"Removed tag {tag}",
            )
            for policy in policies_with_tag(self.list_policies(), tag)
        ]

    def create_from_template(self, template: PolicyTemplate, actor: Actor) -> Policy:
        return self.create_policy(draft_from_template(template), actor)

    # -- lifecycle --------------------------------------------------------

    def submit_for_review(self, policy_id: str, actor: Actor, reviewer_id: str) -> Policy:
        policy = self._transition(policy_id, lifecycle.REVIEW, actor, reviewer_id=reviewer_id)
        if self.notifier is not None:
            self.notifier.notify_admins_of_submission(policy, policy.author or actor.email)
        return policy

    def approve(self, policy_id: str, actor: Actor) -> Policy:
        policy = self._transition(policy_id, lifecycle.APPROVED, actor)
        if self.notifier is not None:
            self.notifier.notify_owner_of_decision(policy, "approved")
        return policy

    def reject(self, policy_id: str, actor: Actor, reason: str) -> Policy:
        policy = self._transition(policy_id, lifecycle.DRAFT, actor, reason=reason)
        if self.notifier is not None:
            self.notifier.notify_owner_of_decision(policy, "rejected", reason.strip())
        return policy

    def publish(self, policy_id: str, actor: Actor) -> Policy:
        return self._transition(policy_id, lifecycle.ACTIVE, actor)

    def archive(self, policy_id: str, actor: Actor) -> Policy:
        return self._transition(policy_id, lifecycle.ARCHIVED, actor)

    def _transition(self, policy_id: str, target: str, actor: Actor, **kwargs: Any) -> Policy:
        policy = parse_policy(self.store.get_policy(policy_id))
        fields = lifecycle.transition_fields(policy, target, actor, **kwargs)
        return parse_policy(self.store.update_policy(policy_id, fields))

    # -- secondary effects ------------------------------------------------

    def _link_tags(self, policy_id: str, tags: List[str]) -> None:
        try:
            self.store.link_policy_tags(policy_id, tags)
        except PersistenceError as exc:
            logger.error("Error handling tags for policy %s: %s", policy_id, exc)

    def _resplit_quietly(self, policy_id: str, content: str) -> None:
        try:
            self.resplit_sections(policy_id, content)
        except (PersistenceError, ValidationError) as exc:
            logger.error("Error creating sections for policy %s: %s", policy_id, exc)


def _section_row(section: PolicySection) -> Dict[str, Any]:
    row = asdict(section)
    return {
        "section_number": row["section_number"],
        "section_title": row["title"],
        "section_content": row["content"],
        "compliance_tags": row["compliance_tags"],
    }
