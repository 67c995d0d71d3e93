from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import requests

from policydesk import __version__
from policydesk.exceptions import AuthenticationError, PersistenceError
from policydesk.models.config import AppConfig


class PolicyStoreClient:
    """Storage and auth collaborator backed by the project's REST API."""

    def __init__(self, config: AppConfig) -> None:
        self._base_url = config.api_url
        self._session = requests.Session()
        self._session.headers.update({
            "apikey": config.api_key,
            "Authorization": f"Bearer {config.access_token}",
            "User-Agent": f"policydesk/{__version__}",
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        })

    def get(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, json: Any = None, params: Optional[Dict[str, str]] = None) -> Any:
        return self._request("POST", path, json=json, params=params)

    def patch(self, path: str, json: Any = None, params: Optional[Dict[str, str]] = None) -> Any:
        return self._request("PATCH", path, json=json, params=params)

    def delete(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        return self._request("DELETE", path, params=params)

    # -- auth -------------------------------------------------------------

    def get_current_user(self) -> Dict[str, Any]:
        user = self.get("auth/v1/user")
        if not isinstance(user, dict) or not user.get("id"):
            raise AuthenticationError(
                "User not authenticated. Run policydesk --init to set a new token."
            )
        return user

    def get_user_roles(self, user_id: str) -> List[str]:
        rows = self.get("rest/v1/user_roles", params={"select": "role", "user_id": f"eq.{user_id}"})
        return [str(r["role"]) for r in _rows(rows) if r.get("role")]

    def list_user_ids_with_role(self, role: str) -> List[str]:
        rows = self.get("rest/v1/user_roles", params={"select": "user_id", "role": f"eq.{role}"})
        return [str(r["user_id"]) for r in _rows(rows) if r.get("user_id")]

    def get_profile_email(self, user_id: str) -> str:
        rows = self.get("rest/v1/profiles", params={"select": "email", "id": f"eq.{user_id}"})
        for row in _rows(rows):
            return str(row.get("email") or "")
        return ""

    # -- policies ---------------------------------------------------------

    def list_policies(self) -> List[Dict[str, Any]]:
        return _rows(self.get(
            "rest/v1/policies", params={"select": "*", "order": "updated_at.desc"},
        ))

    def get_policy(self, policy_id: str) -> Dict[str, Any]:
        rows = _rows(self.get(
            "rest/v1/policies", params={"select": "*", "id": f"eq.{policy_id}"},
        ))
        if not rows:
            raise PersistenceError(f"Policy not found: {policy_id}")
        return rows[0]

    def insert_policy(self, row: Dict[str, Any]) -> Dict[str, Any]:
        return _single(self.post("rest/v1/policies", json=row), "policies")

    def update_policy(self, policy_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        return _single(
            self.patch("rest/v1/policies", json=fields, params={"id": f"eq.{policy_id}"}),
            "policies",
        )

    def delete_policy(self, policy_id: str) -> None:
        self.delete("rest/v1/policies", params={"id": f"eq.{policy_id}"})

    # -- versions ---------------------------------------------------------

    def insert_version(
        self, policy_id: str, label: str, description: str, edited_by: str,
    ) -> Dict[str, Any]:
        return _single(self.post("rest/v1/versions", json={
            "policy_id": policy_id,
            "version_label": label,
            "description": description,
            "edited_by": edited_by,
        }), "versions")

    def list_versions(self, policy_id: str) -> List[Dict[str, Any]]:
        return _rows(self.get("rest/v1/versions", params={
            "select": "*",
            "policy_id": f"eq.{policy_id}",
            "order": "created_at.desc",
        }))

    # -- sections and frameworks ------------------------------------------

    def list_sections(self, policy_id: str) -> List[Dict[str, Any]]:
        return _rows(self.get("rest/v1/policy_sections", params={
            "select": "*",
            "policy_id": f"eq.{policy_id}",
            "order": "section_number.asc",
        }))

    def replace_sections(
        self, policy_id: str, rows: Sequence[Dict[str, Any]],
    ) -> List[Dict[str, Any]]:
        self.delete("rest/v1/policy_sections", params={"policy_id": f"eq.{policy_id}"})
        if not rows:
            return []
        payload = [dict(row, policy_id=policy_id) for row in rows]
        return _rows(self.post("rest/v1/policy_sections", json=payload))

    def list_frameworks(self) -> List[Dict[str, Any]]:
        return _rows(self.get("rest/v1/compliance_frameworks", params={"select": "*"}))

    # -- tags -------------------------------------------------------------

    def link_policy_tags(self, policy_id: str, tag_names: Sequence[str]) -> None:
        tag_ids: List[str] = []
        for name in tag_names:
            existing = _rows(self.get(
                "rest/v1/tags", params={"select": "tag_id", "tag_name": f"eq.{name}"},
            ))
            if existing:
                tag_ids.append(str(existing[0]["tag_id"]))
            else:
                created = _single(self.post("rest/v1/tags", json={"tag_name": name}), "tags")
                tag_ids.append(str(created["tag_id"]))

        self.delete("rest/v1/policy_tags", params={"policy_id": f"eq.{policy_id}"})
        if tag_ids:
            self.post("rest/v1/policy_tags", json=[
                {"policy_id": policy_id, "tag_id": tag_id} for tag_id in tag_ids
            ])

    # -- functions --------------------------------------------------------

    def invoke_function(self, name: str, body: Dict[str, Any]) -> Any:
        return self.post(f"functions/v1/{name}", json=body)

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        normalized_path = path.lstrip("/")
        url = self._base_url + normalized_path
        try:
            response = self._session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            raise PersistenceError(
                f"Cannot connect to {self._base_url}. "
                "Check your network connection and API URL."
            ) from exc

        if response.status_code in (401, 403):
            raise AuthenticationError(
                "Authentication failed. Your access token may have expired. "
                "Run policydesk --init to set a new token."
            )
        if response.status_code == 404:
            raise PersistenceError(f"Resource not found: {normalized_path}.")
        if response.status_code >= 500:
            raise PersistenceError(
                f"Backend server error ({response.status_code}). Please try again later."
            )

        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise PersistenceError(
                f"Request failed ({response.status_code}) for {normalized_path}: "
                f"{_error_message(response)}"
            ) from exc

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise PersistenceError(
                f"Invalid response from backend for {normalized_path}. Expected JSON data."
            ) from exc


def _rows(data: Any) -> List[Dict[str, Any]]:
    if not isinstance(data, list):
        return []
    return [row for row in data if isinstance(row, dict)]


def _single(data: Any, table: str) -> Dict[str, Any]:
    if isinstance(data, dict):
        return data
    rows = _rows(data)
    if not rows:
        raise PersistenceError(f"Backend returned no row for {table}.")
    return rows[0]


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or "no details"
    if isinstance(body, dict):
        for key in ("message", "details", "hint", "error"):
            if body.get(key):
                return str(body[key])
    return "no details"
