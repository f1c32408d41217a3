"""CRM contacts API client and payload helpers."""

from .client import CRMError, LeadConnectorClient, build_session  # noqa: F401
from .payloads import extract_contacts  # noqa: F401

__all__ = [
    "CRMError",
    "LeadConnectorClient",
    "build_session",
    "extract_contacts",
]
