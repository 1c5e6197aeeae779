# vine_ladder/supabase_client.py
"""
Thin HTTP client wrapper for the hosted backend (REST rows, remote procedures, auth).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import requests

from .errors import GatewayError

logger = logging.getLogger(__name__)

Filters = Mapping[str, Any]
Row = Dict[str, Any]


def _filter_value(value: Any) -> str:
    """
    Render a filter value using the REST operator syntax.

    Accepted shapes:
      - "abc"               -> "eq.abc"
      - ("in", ["a", "b"])  -> "in.(a,b)"
      - ("is", "null")      -> "is.null"
      - ("neq", "x")        -> "neq.x"
    """
    if isinstance(value, tuple) and len(value) == 2:
        op, arg = value
        if op == "in":
            return "in.(" + ",".join(str(v) for v in arg) + ")"
        return f"{op}.{arg}"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def _error_message(r: requests.Response) -> str:
    """Extract a readable message from a backend error body."""
    try:
        body = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("message", "msg", "error_description", "error", "hint"):
            val = body.get(key)
            if isinstance(val, str) and val.strip():
                return val.strip()
    text = (r.text or "").strip()
    return text or f"HTTP {r.status_code}"


class SupabaseClient:
    """A minimal client for the backend's row, procedure and auth endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: Optional[str] = None,
        timeout: int = 10,
    ) -> None:
        """Store the base URL and credentials, and build request headers."""
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self._headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
            "User-Agent": "vine-ladder/1.0",
        }

    def with_token(self, access_token: Optional[str]) -> "SupabaseClient":
        """Return a client bound to a session bearer token (or this client if none)."""
        if not access_token:
            return self
        return SupabaseClient(self.base_url, self.api_key, access_token=access_token, timeout=self.timeout)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Sequence[tuple[str, str]]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Any:
        """
        Execute a request to base_url + path and return parsed JSON (None for empty bodies).

        Raises:
            GatewayError on transport failures and non-2xx responses.
        """
        url = f"{self.base_url}{path}"
        hdrs = dict(self._headers)
        if headers:
            hdrs.update(headers)
        try:
            r = requests.request(method, url, params=params, json=json, headers=hdrs, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise GatewayError(f"Network error: {exc}") from exc

        if not r.ok:
            message = _error_message(r)
            logger.warning("%s %s returned %s: %s", method, path, r.status_code, message)
            raise GatewayError(message, status_code=r.status_code)

        if not r.content:
            return None
        try:
            return r.json()
        except ValueError as exc:
            raise GatewayError(f"Invalid JSON from {path}", status_code=r.status_code) from exc

    # -------------------------
    # Rows
    # -------------------------

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Filters] = None,
        order: Optional[str] = None,
        ascending: bool = True,
        single: bool = False,
    ) -> Union[List[Row], Row]:
        """Query rows from a table; with single=True exactly one row is returned."""
        params: List[tuple[str, str]] = [("select", columns)]
        for col, val in (filters or {}).items():
            params.append((col, _filter_value(val)))
        if order:
            params.append(("order", f"{order}.{'asc' if ascending else 'desc'}"))
        headers = {"Accept": "application/vnd.pgrst.object+json"} if single else None
        data = self._request("GET", f"/rest/v1/{table}", params=params, headers=headers)
        if single:
            return data or {}
        return data if isinstance(data, list) else []

    def insert(self, table: str, rows: Union[Row, List[Row]]) -> List[Row]:
        """Insert one or more rows and return the inserted representation."""
        data = self._request(
            "POST",
            f"/rest/v1/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return data if isinstance(data, list) else []

    def update(self, table: str, values: Row, filters: Filters) -> List[Row]:
        """Update rows matching filters and return the updated representation."""
        if not filters:
            raise ValueError("update requires at least one filter")
        params = [(col, _filter_value(val)) for col, val in filters.items()]
        data = self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=params,
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return data if isinstance(data, list) else []

    def delete(self, table: str, filters: Filters) -> None:
        """Delete rows matching filters."""
        if not filters:
            raise ValueError("delete requires at least one filter")
        params = [(col, _filter_value(val)) for col, val in filters.items()]
        self._request("DELETE", f"/rest/v1/{table}", params=params)

    # -------------------------
    # Remote procedures
    # -------------------------

    def rpc(self, name: str, params: Optional[Row] = None) -> Any:
        """Invoke a remote procedure by name."""
        return self._request("POST", f"/rest/v1/rpc/{name}", json=params or {})

    def accept_challenge(self, challenge_id: str, user_id: str) -> Any:
        """Ask the backend to accept a pending challenge on behalf of user_id."""
        return self.rpc("accept_challenge", {"challenge_id": challenge_id, "user_id": user_id})

    def record_challenge_outcome(
        self, challenge_id: str, winner_id: str, loser_id: str, user_id: str, score: str
    ) -> Any:
        """Ask the backend to record the winner, loser and score of an accepted challenge."""
        return self.rpc(
            "record_challenge_outcome",
            {
                "challenge_id": challenge_id,
                "winner_id": winner_id,
                "loser_id": loser_id,
                "user_id": user_id,
                "score": score,
            },
        )

    # -------------------------
    # Auth
    # -------------------------

    def sign_in(self, email: str, password: str) -> Row:
        """Exchange email + password for a session payload (access_token, user, ...)."""
        data = self._request(
            "POST",
            "/auth/v1/token",
            params=[("grant_type", "password")],
            json={"email": email, "password": password},
        )
        return data or {}

    def get_user(self) -> Row:
        """Return the user bound to the current access token."""
        return self._request("GET", "/auth/v1/user") or {}
