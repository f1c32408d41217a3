"""HTTP client for the CRM contacts API."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import CRMSettings
from .payloads import extract_contacts

LOGGER = logging.getLogger(__name__)


class CRMError(RuntimeError):
    """Raised when the CRM cannot be reached or answers with a non-2xx status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def build_session(settings: CRMSettings) -> requests.Session:
    """Create a session that retries idempotent reads on throttling and 5xx answers."""

    retry = Retry(
        total=settings.total_retries,
        connect=settings.total_retries,
        read=settings.total_retries,
        backoff_factor=settings.backoff_factor,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET",),
        raise_on_status=False,
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


class LeadConnectorClient:
    """Thin wrapper over the ``/contacts`` endpoints.

    Every method raises :class:`CRMError` on transport failures and non-2xx
    responses. Callers that need a non-raising interface go through
    :class:`~loan_pipeline.orchestrator.PipelineOrchestrator`.
    """

    def __init__(self, settings: CRMSettings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self._session = session or build_session(settings)

    @property
    def contacts_url(self) -> str:
        return f"{self.settings.base_url}/contacts/"

    def contact_url(self, contact_id: str) -> str:
        return f"{self.settings.base_url}/contacts/{contact_id}"

    def _headers(self, *, json_body: bool = False) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {self.settings.token}",
            "Version": self.settings.api_version,
        }
        if json_body:
            headers["Content-Type"] = "application/json"
        return headers

    def _request(self, method: str, url: str, *, json: Optional[Mapping[str, Any]] = None) -> Any:
        try:
            response = self._session.request(
                method,
                url,
                params={"locationId": self.settings.location_id},
                headers=self._headers(json_body=json is not None),
                json=json,
                timeout=(self.settings.connect_timeout, self.settings.read_timeout),
            )
        except requests.exceptions.RequestException as exc:
            raise CRMError(f"CRM request failed: {exc}") from exc

        LOGGER.debug("%s %s -> %s", method, url, response.status_code)
        if not response.ok:
            body = (response.text or "")[:200]
            detail = f" - {body}" if body else ""
            raise CRMError(f"HTTP error! Status: {response.status_code}{detail}", status_code=response.status_code)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise CRMError(f"CRM returned a non-JSON body for {method} {url}") from exc

    def fetch_contacts_payload(self) -> Any:
        """Return the decoded contacts listing exactly as the CRM sent it."""
        return self._request("GET", self.contacts_url)

    def list_contacts(self) -> List[Any]:
        return extract_contacts(self.fetch_contacts_payload())

    def get_contact(self, contact_id: str) -> Any:
        return self._request("GET", self.contact_url(contact_id))

    def create_contact(self, payload: Mapping[str, Any]) -> Any:
        return self._request("POST", self.contacts_url, json=payload)

    def update_contact(self, contact_id: str, payload: Mapping[str, Any]) -> Any:
        return self._request("PUT", self.contact_url(contact_id), json=payload)

    def delete_contact(self, contact_id: str) -> Any:
        return self._request("DELETE", self.contact_url(contact_id))

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "LeadConnectorClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


__all__ = ["CRMError", "LeadConnectorClient", "build_session"]
