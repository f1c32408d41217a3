"""Pipeline orchestrator: fetch contacts, categorize them, and write changes back to the CRM."""
from __future__ import annotations

import logging
from typing import Any, Callable, List, Mapping, Optional, Protocol, Sequence, Union

from ..categorize import categorize_contacts, sanitize_tags, utc_timestamp
from ..crm.client import CRMError
from ..crm.payloads import (
    build_create_payload,
    build_move_payload,
    build_tags_payload,
    build_update_payload,
    contact_tags,
    extract_contacts,
)
from ..metrics import AverageTimeFunction, calculate_detailed_metrics, placeholder_average_time
from ..models import LeadDraft, OperationResult, PipelineMetrics, PipelineSnapshot
from ..stages import DEFAULT_CATALOG, StageCatalog

LOGGER = logging.getLogger(__name__)


class ContactsClientProtocol(Protocol):
    """Interface the orchestrator expects from a CRM client."""

    def fetch_contacts_payload(self) -> Any:  # pragma: no cover - runtime protocol
        """Return the raw decoded contacts listing."""

    def get_contact(self, contact_id: str) -> Any:  # pragma: no cover - runtime protocol
        ...

    def create_contact(self, payload: Mapping[str, Any]) -> Any:  # pragma: no cover - runtime protocol
        ...

    def update_contact(self, contact_id: str, payload: Mapping[str, Any]) -> Any:  # pragma: no cover
        ...

    def delete_contact(self, contact_id: str) -> Any:  # pragma: no cover - runtime protocol
        ...


class PipelineOrchestrator:
    """Runs the fetch → categorize → aggregate pass and the CRM write operations.

    Nothing raised by the client crosses this boundary: every public method
    returns an :class:`OperationResult` carrying either data or an error message.
    """

    def __init__(
        self,
        client: Optional[ContactsClientProtocol] = None,
        *,
        catalog: StageCatalog = DEFAULT_CATALOG,
        average_time: AverageTimeFunction = placeholder_average_time,
        clock: Callable[[], str] = utc_timestamp,
    ) -> None:
        self._client = client
        self._catalog = catalog
        self._average_time = average_time
        self._clock = clock

    @property
    def catalog(self) -> StageCatalog:
        return self._catalog

    def _crm(self) -> ContactsClientProtocol:
        if self._client is None:
            raise CRMError("No CRM client configured")
        return self._client

    # --- Reads ---

    def build_snapshot(self, contacts: Any) -> PipelineSnapshot:
        """Categorize already-fetched contacts; never fails."""

        now = self._clock()
        buckets = categorize_contacts(contacts, self._catalog, now=now)
        metrics = calculate_detailed_metrics(buckets, self._catalog, average_time=self._average_time, now=now)
        return PipelineSnapshot(leads=buckets, metrics=metrics, stages=self._catalog.stages, fetched_at=now)

    def empty_snapshot(self) -> PipelineSnapshot:
        return self.build_snapshot([])

    def fetch_pipeline(self) -> OperationResult:
        """Fetch every contact and return a :class:`PipelineSnapshot`.

        On failure the result still carries a snapshot with every stage key
        mapped to an empty bucket.
        """

        try:
            payload = self._crm().fetch_contacts_payload()
        except CRMError as exc:
            LOGGER.error("Error fetching pipeline leads: %s", exc)
            return OperationResult.failure(str(exc), data=self.empty_snapshot())

        contacts = extract_contacts(payload)
        snapshot = self.build_snapshot(contacts)
        LOGGER.info(
            "Fetched %s contacts into %s stages (%s leads)",
            len(contacts),
            len(snapshot.leads),
            snapshot.total_leads,
        )
        return OperationResult.ok(snapshot)

    def fetch_metrics(self) -> OperationResult:
        result = self.fetch_pipeline()
        if not result.success:
            return OperationResult.failure(result.error or "Unknown error", data=PipelineMetrics())
        return OperationResult.ok(result.data.metrics)

    def fetch_stage_leads(self, stage: str) -> OperationResult:
        if not self._catalog.has_stage(stage):
            return OperationResult.failure(f"Unknown stage '{stage}'", data=[])
        result = self.fetch_pipeline()
        if not result.success:
            return OperationResult.failure(result.error or "Unknown error", data=[])
        return OperationResult.ok(result.data.leads[stage])

    def stage_tags(self, stage: str) -> List[str]:
        return self._catalog.tags_for(stage)

    def available_tags(self) -> List[str]:
        return list(self._catalog.vocabulary)

    def check_connection(self) -> OperationResult:
        settings = getattr(self._client, "settings", None)
        if settings is not None:
            LOGGER.info(
                "Testing CRM connection (base_url=%s, location=%s, token=%s)",
                settings.base_url,
                settings.location_id,
                settings.masked_token(),
            )
        try:
            payload = self._crm().fetch_contacts_payload()
        except CRMError as exc:
            LOGGER.error("CRM connection test failed: %s", exc)
            return OperationResult.failure(str(exc))
        return OperationResult.ok(payload)

    def count_contacts(self) -> OperationResult:
        result = self.check_connection()
        if not result.success:
            return result
        count = len(extract_contacts(result.data))
        LOGGER.info("Found %s contacts in the CRM", count)
        return OperationResult.ok({"contactsCount": count, "hasContacts": count > 0})

    # --- Writes ---

    def create_lead(self, draft: Union[LeadDraft, Mapping[str, Any]]) -> OperationResult:
        if not isinstance(draft, LeadDraft):
            draft = LeadDraft.from_mapping(draft)
        try:
            payload = build_create_payload(draft, now=self._clock(), catalog=self._catalog)
            created = self._crm().create_contact(payload)
        except (CRMError, ValueError) as exc:
            LOGGER.error("Failed to create lead: %s", exc)
            return OperationResult.failure(str(exc))
        LOGGER.info("Created lead %s in stage %s", draft.name, payload["customField"]["stage"])
        return OperationResult.ok(created)

    def update_lead(self, lead_id: str, updates: Mapping[str, Any]) -> OperationResult:
        try:
            if not lead_id:
                raise ValueError("Lead ID and updates are required")
            payload = build_update_payload(updates, now=self._clock())
            self._crm().update_contact(lead_id, payload)
        except (CRMError, ValueError) as exc:
            LOGGER.error("Failed to update lead %s: %s", lead_id, exc)
            return OperationResult.failure(str(exc))
        return OperationResult.ok({"leadId": lead_id, "updates": dict(updates)})

    def move_lead(self, lead_id: str, to_stage: str, from_stage: Optional[str] = None) -> OperationResult:
        """Move a lead to ``to_stage``, replacing the old stage tag with the new one."""

        if not lead_id or not to_stage:
            return OperationResult.failure("Lead ID and new stage are required")

        try:
            current = self._crm().get_contact(lead_id)
        except CRMError as exc:
            LOGGER.warning("Could not read current tags for lead %s: %s", lead_id, exc)
            current = None

        payload = build_move_payload(
            contact_tags(current),
            to_stage,
            from_stage,
            now=self._clock(),
            catalog=self._catalog,
        )
        try:
            self._crm().update_contact(lead_id, payload)
        except CRMError as exc:
            LOGGER.error("Failed to move lead %s: %s", lead_id, exc)
            return OperationResult.failure(str(exc))

        LOGGER.info("Moved lead %s from %s to %s", lead_id, from_stage, to_stage)
        return OperationResult.ok(
            {
                "leadId": lead_id,
                "newStage": to_stage,
                "oldStage": from_stage,
                "tags": payload["customField"]["tags"],
            }
        )

    def update_lead_tags(self, lead_id: str, tags: Sequence[str]) -> OperationResult:
        if not lead_id or not tags:
            return OperationResult.failure("Lead ID and tags are required")

        cleaned = sanitize_tags(list(tags), self._catalog)
        LOGGER.debug("Tags for %s: %s -> %s", lead_id, list(tags), cleaned)
        try:
            self._crm().update_contact(lead_id, build_tags_payload(cleaned))
        except CRMError as exc:
            LOGGER.error("Failed to update tags for lead %s: %s", lead_id, exc)
            return OperationResult.failure(str(exc))
        return OperationResult.ok({"leadId": lead_id, "tags": cleaned})

    def delete_lead(self, lead_id: str) -> OperationResult:
        if not lead_id:
            return OperationResult.failure("Lead ID is required")
        try:
            self._crm().delete_contact(lead_id)
        except CRMError as exc:
            LOGGER.error("Failed to delete lead %s: %s", lead_id, exc)
            return OperationResult.failure(str(exc))
        LOGGER.info("Deleted lead %s", lead_id)
        return OperationResult.ok({"leadId": lead_id})


__all__ = ["ContactsClientProtocol", "PipelineOrchestrator"]
