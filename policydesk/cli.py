from __future__ import annotations

import argparse
import getpass
import json
import logging
from pathlib import Path
from typing import Any, List

import yaml

from policydesk.catalog import fuzzy_match
from policydesk.client import PolicyStoreClient
from policydesk.config import read_config, write_config
from policydesk.exceptions import ConfigError, ValidationError
from policydesk.exporters.policies import PoliciesExporter
from policydesk.importers import import_policy_file
from policydesk.lifecycle import check_version_history, visible_policies
from policydesk.models.config import AppConfig
from policydesk.models.policies import Actor, ComplianceFramework, parse_framework
from policydesk.notifications import PolicyNotifier
from policydesk.service import PolicyService
from policydesk.splitter import split_policy_into_sections
from policydesk.tagger import tag_sections
from policydesk.tags import tag_counts
from policydesk.templates import get_template, load_templates

EXPORT_DIR = "exports"

_REMOTE_COMMANDS = (
    "list", "create", "update", "submit", "approve", "reject", "publish", "archive", "export",
    "delete", "versions", "add_tags", "set_type", "tags", "rename_tag", "remove_tag",
    "from_template",
)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="policydesk",
        description="Manage, segment and review security-policy documents.",
    )
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        "--init",
        metavar="API_URL",
        help="Initialize configuration with the backend API URL.",
    )
    group.add_argument(
        "--split", metavar="FILE",
        help="Split a policy file into sections and print them (no backend needed).",
    )
    group.add_argument(
        "--list", nargs="?", const="", metavar="QUERY",
        help="List policies, optionally fuzzy-filtered by title.",
    )
    group.add_argument("--create", metavar="FILE", help="Create a policy from a file.")
    group.add_argument("--update", metavar="POLICY_ID", help="Update a policy's content.")
    group.add_argument("--submit", metavar="POLICY_ID", help="Submit a draft for review.")
    group.add_argument("--approve", metavar="POLICY_ID", help="Approve a policy under review.")
    group.add_argument("--reject", metavar="POLICY_ID", help="Reject a policy back to draft.")
    group.add_argument("--publish", metavar="POLICY_ID", help="Publish an approved policy.")
    group.add_argument("--archive", metavar="POLICY_ID", help="Archive an active policy.")
    group.add_argument(
        "--export", nargs="*", metavar="POLICY_ID",
        help="Export policies (all when no id is given).",
    )
    group.add_argument("--delete", metavar="POLICY_ID", help="Delete a policy.")
    group.add_argument(
        "--versions", metavar="POLICY_ID",
        help="Show a policy's version history, newest first.",
    )
    group.add_argument(
        "--add-tags", nargs="+", metavar="POLICY_ID",
        help="Add the --tag values to each listed policy.",
    )
    group.add_argument(
        "--set-type", nargs="+", metavar="POLICY_ID",
        help="Change each listed policy to --type (the category follows the type).",
    )
    group.add_argument(
        "--tags", action="store_true", help="List tags in use with their policy counts.",
    )
    group.add_argument(
        "--rename-tag", nargs=2, metavar=("OLD", "NEW"),
        help="Rename a tag on every policy that carries it.",
    )
    group.add_argument("--remove-tag", metavar="TAG", help="Remove a tag from every policy.")
    group.add_argument(
        "--templates", action="store_true", help="List the bundled policy templates.",
    )
    group.add_argument(
        "--from-template", metavar="TEMPLATE_ID",
        help="Create a draft policy from a bundled template.",
    )
    parser.add_argument(
        "--frameworks", metavar="FILE",
        help="JSON or YAML list of compliance frameworks used by --split for tagging.",
    )
    parser.add_argument("--content-file", metavar="FILE", help="New content for --update.")
    parser.add_argument("--message", help="Change description for --update.")
    parser.add_argument("--reviewer", metavar="USER_ID", help="Reviewer for --submit.")
    parser.add_argument("--reason", help="Rejection reason for --reject.")
    parser.add_argument(
        "--status", metavar="STATUS",
        help="Only list policies in STATUS (archived ones are hidden otherwise).",
    )
    parser.add_argument(
        "--tag", action="append", default=[], metavar="TAG",
        help="Tag for --add-tags; repeat for several.",
    )
    parser.add_argument("--type", metavar="TYPE", help="Policy type for --set-type.")
    parser.add_argument(
        "--output", metavar="DIR", default=EXPORT_DIR,
        help=f"Export directory (default: {EXPORT_DIR}).",
    )
    parser.add_argument(
        "--force", action="store_true",
        help="Overwrite existing files without confirmation.",
    )
    parser.add_argument(
        "--keep-raw-json", action="store_true",
        help="Also write raw JSON files alongside Markdown.",
    )
    parser.add_argument("--text", action="store_true", help="Also write plain-text files.")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def _run_init(api_url: str) -> None:
    if not api_url.startswith("https://"):
        raise ConfigError("API URL must start with https://")

    api_key = input("Enter your project API key: ")
    if not api_key.strip():
        raise ConfigError("API key cannot be empty.")

    access_token = getpass.getpass("Enter your access token: ")
    if not access_token.strip():
        raise ConfigError("Access token cannot be empty.")

    user_email = input("Enter your e-mail address (optional): ")

    config = AppConfig(
        api_url=api_url,
        api_key=api_key.strip(),
        access_token=access_token.strip(),
        user_email=user_email.strip(),
    )
    cwd = Path.cwd()
    write_config(cwd, config)
    (cwd / EXPORT_DIR).mkdir(exist_ok=True)

    print("Configuration saved to .policydesk.ini")
    print(f"Created directory: {EXPORT_DIR}/")


def _read_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(f"Cannot read {path}: {exc.strerror or exc}") from exc


def _load_frameworks(path: Path) -> List[ComplianceFramework]:
    text = _read_file(path)
    try:
        raw: Any = json.loads(text) if path.suffix.lower() == ".json" else yaml.safe_load(text)
    except (ValueError, yaml.YAMLError) as exc:
        raise ValidationError(f"Invalid frameworks file {path.name}.") from exc
    if not isinstance(raw, list):
        raise ValidationError(f"Frameworks file {path.name} must contain a list.")
    return [parse_framework(item) for item in raw]


def _run_split(args: argparse.Namespace) -> None:
    sections = split_policy_into_sections(_read_file(Path(args.split)))
    if args.frameworks:
        sections = tag_sections(sections, _load_frameworks(Path(args.frameworks)))
    if not sections:
        print("No sections found.")
        return
    for section in sections:
        line = f"{section.section_number}. {section.title}"
        if section.compliance_tags:
            line += "  [" + ", ".join(section.compliance_tags) + "]"
        print(line)
    print(f"{len(sections)} section(s)")


def _resolve_actor(client: PolicyStoreClient, config: AppConfig) -> Actor:
    user = client.get_current_user()
    user_id = str(user["id"])
    return Actor(
        user_id=user_id,
        email=str(user.get("email") or config.user_email),
        roles=frozenset(client.get_user_roles(user_id)),
    )


def _run_remote(args: argparse.Namespace) -> None:
    cwd = Path.cwd()
    config = read_config(cwd)
    client = PolicyStoreClient(config)
    service = PolicyService(client, PolicyNotifier(client))

    if args.list is not None:
        for policy in visible_policies(service.list_policies(), args.status):
            if fuzzy_match(args.list, policy.title):
                print(f"{policy.id}  v{policy.version:.1f}  {policy.status:<12} {policy.title}")
        return

    if args.versions:
        _show_versions(service, args.versions)
        return

    if args.tags:
        counts = tag_counts(service.list_policies())
        for tag, count in counts:
            print(f"{count:>4}  {tag}")
        if not counts:
            print("No tags in use.")
        return

    if args.delete:
        if not args.force and not _confirm(f"Delete policy {args.delete}? [y/N] "):
            print("Aborted.")
            return
        service.delete_policy(args.delete)
        print(f"Deleted policy {args.delete}")
        return

    if args.export is not None:
        PoliciesExporter(
            service,
            cwd / args.output,
            policy_ids=args.export,
            force=args.force,
            keep_raw_json=args.keep_raw_json,
            plain_text=args.text,
        ).export()
        return

    actor = _resolve_actor(client, config)

    if args.create:
        policy = service.create_policy(import_policy_file(Path(args.create)), actor)
        print(f"Created policy {policy.id} ({policy.title}) at v{policy.version:.1f}")
    elif args.update:
        if not args.content_file:
            raise ValidationError("--update requires --content-file.")
        content = _read_file(Path(args.content_file))
        policy = service.update_policy(
            args.update, {"content": content}, actor, change_description=args.message,
        )
        print(f"Updated policy {policy.id} to v{policy.version:.1f}")
    elif args.submit:
        policy = service.submit_for_review(args.submit, actor, args.reviewer or "")
        print(f"Policy {policy.id} submitted for review")
    elif args.approve:
        policy = service.approve(args.approve, actor)
        print(f"Policy {policy.id} approved")
    elif args.reject:
        policy = service.reject(args.reject, actor, args.reason or "")
        print(f"Policy {policy.id} rejected and returned to draft")
    elif args.publish:
        policy = service.publish(args.publish, actor)
        print(f"Policy {policy.id} is now active")
    elif args.archive:
        policy = service.archive(args.archive, actor)
        print(f"Policy {policy.id} archived")
    elif args.add_tags:
        updated = service.add_tags(args.add_tags, args.tag, actor)
        print(f"Tagged {len(updated)} of {len(args.add_tags)} policies")
    elif args.set_type:
        if not args.type:
            raise ValidationError("--set-type requires --type.")
        updated = service.set_type(args.set_type, args.type, actor)
        print(f"Changed type of {len(updated)} of {len(args.set_type)} policies")
    elif args.rename_tag:
        old, new = args.rename_tag
        updated = service.rename_tag(old, new, actor)
        print(f"Renamed tag on {len(updated)} policies")
    elif args.remove_tag:
        updated = service.remove_tag(args.remove_tag, actor)
        print(f"Removed tag from {len(updated)} policies")
    elif args.from_template:
        policy = service.create_from_template(get_template(args.from_template), actor)
        print(f"Created policy {policy.id} ({policy.title}) from template {args.from_template}")


def _show_versions(service: PolicyService, policy_id: str) -> None:
    policy = service.get_policy(policy_id)
    versions = service.get_versions(policy_id)
    for version in versions:
        line = f"{version.label:<6} {version.created_at}  {version.edited_by}"
        print(f"{line}  {version.description}".rstrip())
    if check_version_history(policy, versions):
        print(f"History matches policy version v{policy.version:.1f}")
    else:
        print(f"Warning: history does not match policy version v{policy.version:.1f}")


def _run_templates() -> None:
    for template in load_templates():
        print(f"{template.id:<26} {template.type:<20} {template.title}")


def _confirm(prompt: str) -> bool:
    return input(prompt).strip().lower() in ("y", "yes")


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.init:
        _run_init(args.init)
    elif args.split:
        _run_split(args)
    elif args.templates:
        _run_templates()
    elif any(getattr(args, name) not in (None, False) for name in _REMOTE_COMMANDS):
        _run_remote(args)
    else:
        parser.print_help()
