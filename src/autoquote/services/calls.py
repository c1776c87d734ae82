"""Persistence interface for call records."""

from collections.abc import Collection
from typing import Protocol
from uuid import UUID

from autoquote.domain.calls import CallRecord, CallStatus


class CallRepository(Protocol):
    """Conditional create/update/query operations over call records.

    Implementations must apply ``update_call`` atomically: the write only
    happens when the stored status is one of ``expected``. Callers never pass
    a terminal status in ``expected``, which keeps terminal states sticky.
    """

    def create_call(self, record: CallRecord) -> CallRecord:
        """Create a call record; raise CallAlreadyExistsError if one exists."""

    def get_call(self, session_id: UUID, shop_id: str) -> CallRecord | None:
        """Return a call by its composite key, if present."""

    def list_calls(self, session_id: UUID) -> list[CallRecord]:
        """Return every call recorded for a session."""

    def update_call(
        self,
        session_id: UUID,
        shop_id: str,
        expected: Collection[CallStatus],
        changes: dict[str, object],
    ) -> CallRecord | None:
        """Apply changes if the current status is expected; return the new row."""
