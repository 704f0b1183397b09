"""Event Registration API client.

A small wrapper around the REST API served by
``event_registration_api``.  It uses the ``requests`` library and
exposes one method per operation:

* :meth:`register` – register the current user for an event.
* :meth:`unregister` – cancel the current user's registration.
* :meth:`list_registrations` – list every registration (admin token).
* :meth:`list_user_registrations` – list one user's registrations.
* :meth:`list_events` / :meth:`get_event` – browse the event directory.

Every method returns a tuple ``(data, error)``.  On failure ``data``
is ``None`` (or an empty list) and ``error`` is a dictionary with
``status_code``, ``code`` and ``message``.  ``code`` is the stable
error code reported by the server (``event_full``,
``already_registered`` ...) or ``None`` for transport failures, so
callers can branch on it without parsing messages.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests


logger = logging.getLogger(__name__)

ApiError = Dict[str, Any]


class RegistrationClient:
    """Client for the registration and event endpoints of the API."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: Optional[str] = None,
        api_prefix: str = "/api/v1",
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        """Initialise the API client.

        Args:
            base_url: Base URL of the server, e.g. ``https://example.com``.
            api_key: Bearer token sent in the ``Authorization`` header.
            api_prefix: Path prefix of the versioned API.
            session: Optional requests session.  If not supplied a
                session will be created automatically.
            timeout: Per-request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.api_prefix = "/" + api_prefix.strip("/") if api_prefix.strip("/") else ""
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Low level HTTP helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _error_from_response(response: requests.Response) -> ApiError:
        code = None
        message = ""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            detail = body.get("detail")
            if isinstance(detail, dict):
                code = detail.get("code")
                message = detail.get("message") or ""
            elif detail is not None:
                message = str(detail)
        if not message:
            message = response.text or response.reason or ""
        return {"status_code": response.status_code, "code": code, "message": message}

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any] | None = None,
        json_body: Any | None = None,
    ) -> Tuple[Optional[Any], Optional[ApiError]]:
        """Perform an HTTP request to the API.

        Args:
            method: HTTP method (``GET``, ``POST``, ``DELETE`` ...).
            path: Path below the API prefix, e.g. ``/registrations``.
            params: Query parameters; ``None`` values are dropped.
            json_body: JSON body to send with the request.
        Returns:
            A tuple ``(data, error)``.
        """
        url = f"{self.base_url}{self.api_prefix}{path}"
        headers: Dict[str, str] = {}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if params:
            params = {key: value for key, value in params.items() if value is not None}
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method,
                url=url,
                params=params or None,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("API request failed: %s", exc)
            return None, {"status_code": None, "code": None, "message": str(exc)}
        if not response.ok:
            error = self._error_from_response(response)
            logger.error("API request failed (%s %s): %s", error["status_code"], error["code"], error["message"])
            return None, error
        if response.content:
            return response.json(), None
        return None, None

    # ------------------------------------------------------------------
    # Registration operations
    # ------------------------------------------------------------------
    def register(self, event_id: str) -> Tuple[Optional[Dict[str, Any]], Optional[ApiError]]:
        """Register the token's user for ``event_id``."""
        return self._request("POST", "/registrations", json_body={"event_id": event_id})

    def unregister(self, event_id: str) -> Tuple[Optional[Dict[str, Any]], Optional[ApiError]]:
        """Cancel the token's user's registration for ``event_id``."""
        return self._request("DELETE", f"/registrations/{requests.utils.quote(str(event_id), safe='')}")

    def list_registrations(
        self,
        *,
        event_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], Optional[ApiError]]:
        """List every registration.  Requires an administrator token."""
        data, error = self._request(
            "GET",
            "/registrations",
            params={"event_id": event_id, "status": status, "limit": limit, "offset": offset},
        )
        return (data or []), error

    def list_user_registrations(
        self, user_id: str, *, status: Optional[str] = None
    ) -> Tuple[List[Dict[str, Any]], Optional[ApiError]]:
        """List the registrations of ``user_id``."""
        data, error = self._request(
            "GET",
            f"/registrations/user/{requests.utils.quote(str(user_id), safe='')}",
            params={"status": status},
        )
        return (data or []), error

    # ------------------------------------------------------------------
    # Event operations
    # ------------------------------------------------------------------
    def list_events(
        self, *, limit: Optional[int] = None, offset: Optional[int] = None
    ) -> Tuple[List[Dict[str, Any]], Optional[ApiError]]:
        data, error = self._request("GET", "/events", params={"limit": limit, "offset": offset})
        return (data or []), error

    def get_event(self, event_id: str) -> Tuple[Optional[Dict[str, Any]], Optional[ApiError]]:
        return self._request("GET", f"/events/{requests.utils.quote(str(event_id), safe='')}")
