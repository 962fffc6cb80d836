"""Table of in-flight requests keyed by correlation id."""

from typing import Dict, List, Optional

from structlog import get_logger

from .errors import BridgeValidationError
from .models import PendingRequest

logger = get_logger(__name__)


class PendingRequestTable:
    """Maps correlation ids to pending requests.

    Every entry leaves the table through exactly one of ``pop`` (response or
    deadline), ``discard`` (send failure or caller cancellation) or ``drain``
    (connection teardown). Each of them cancels the entry's timer.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._entries

    def add(self, entry: PendingRequest) -> None:
        """Register a pending request. Ids must be unique among outstanding requests."""
        if entry.request_id in self._entries:
            raise BridgeValidationError(
                f"Request id {entry.request_id!r} is already pending",
                context={"request_id": entry.request_id},
            )
        self._entries[entry.request_id] = entry

    def get(self, request_id: str) -> Optional[PendingRequest]:
        return self._entries.get(request_id)

    def pop(self, request_id: Optional[str]) -> Optional[PendingRequest]:
        """Remove and return an entry, cancelling its timer."""
        if request_id is None:
            return None
        entry = self._entries.pop(request_id, None)
        if entry is not None:
            entry.cancel_timer()
        return entry

    def discard(self, request_id: str) -> None:
        """Forget an entry without completing its future."""
        entry = self.pop(request_id)
        if entry is not None and not entry.future.done():
            entry.future.cancel()

    def drain(self, error_factory) -> List[str]:
        """Reject every entry with a fresh error from ``error_factory``.

        Returns the ids that were rejected.
        """
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            entry.reject(error_factory())
        if entries:
            logger.debug("Rejected pending requests", count=len(entries))
        return [entry.request_id for entry in entries]
