from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from policydesk.client import PolicyStoreClient
from policydesk.exceptions import NotificationError, PersistenceError
from policydesk.models.policies import Policy

logger = logging.getLogger(__name__)

NOTIFICATION_FUNCTION = "send-policy-notification"


class PolicyNotifier:
    """Sends review e-mails through the backend's notification function.

    Every public method swallows its failures: a lost e-mail must never
    fail the policy operation that triggered it.
    """

    def __init__(self, client: PolicyStoreClient) -> None:
        self.client = client

    def notify_admins_of_submission(self, policy: Policy, author: str) -> int:
        """E-mail every admin about a policy awaiting review; returns the number sent."""
        try:
            admin_ids = self.client.list_user_ids_with_role("admin")
        except PersistenceError as exc:
            logger.warning("Could not look up admins to notify: %s", exc)
            return 0
        if not admin_ids:
            logger.info("No admin users found to notify")
            return 0

        sent = 0
        for user_id in admin_ids:
            try:
                email = self._email_for(user_id)
                self._send({
                    "adminEmail": email,
                    "policyTitle": policy.title,
                    "policyAuthor": author,
                    "policyId": policy.id,
                })
            except NotificationError as exc:
                logger.warning("Admin notification for policy %s failed: %s", policy.id, exc)
                continue
            sent += 1
        return sent

    def notify_owner_of_decision(
        self, policy: Policy, decision: str, reason: Optional[str] = None,
    ) -> bool:
        owner_email = policy.author if "@" in policy.author else ""
        body: Dict[str, Any] = {
            "ownerEmail": owner_email,
            "policyTitle": policy.title,
            "decision": decision,
        }
        if reason:
            body["rejectionReason"] = reason
        try:
            if not owner_email:
                raise NotificationError(f"no e-mail address for author '{policy.author}'")
            self._send(body)
        except NotificationError as exc:
            logger.warning("Owner notification for policy %s failed: %s", policy.id, exc)
            return False
        return True

    def _email_for(self, user_id: str) -> str:
        try:
            email = self.client.get_profile_email(user_id)
        except PersistenceError as exc:
            raise NotificationError(f"profile lookup for {user_id} failed: {exc}") from exc
        if not email:
            raise NotificationError(f"could not find e-mail for user {user_id}")
        return email

    def _send(self, body: Dict[str, Any]) -> None:
        try:
            self.client.invoke_function(NOTIFICATION_FUNCTION, body)
        except PersistenceError as exc:
            raise NotificationError(str(exc)) from exc
