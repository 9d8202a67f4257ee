"""Pending request table: correlates request ids with waiting callers.

Each outstanding request owns a single-assignment slot (an asyncio.Future).
The dispatch loop resolves slots as replies arrive, in any order. At teardown
every remaining slot is failed exactly once, so no caller can wait forever on a
dead connection.

All methods are synchronous and run on the event loop thread, which makes
registration and resolution linearizable without an explicit lock.
"""

from __future__ import annotations

import asyncio
import copy
import logging

from .errors import Disconnected, DuplicateRequestId
from .protocol.frames import RequestResponse

logger = logging.getLogger(__name__)

PendingSlot = asyncio.Future  # resolves to a RequestResponse


class PendingRequestTable:
    """Registry of request id -> completion slot."""

    def __init__(self) -> None:
        self._slots: dict[str, asyncio.Future[RequestResponse]] = {}
        self._closed = False

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._slots

    @property
    def closed(self) -> bool:
        """True once fail_all() drained the table."""
        return self._closed

    def register(self, request_id: str) -> PendingSlot[RequestResponse]:
        """Create the slot for a new request.

        Raises:
            DuplicateRequestId: If the id is already pending
            Disconnected: If the table was already drained
        """
        if self._closed:
            raise Disconnected("connection closed before the request was sent")
        if request_id in self._slots:
            raise DuplicateRequestId(f"Request id {request_id!r} is already pending")

        slot: asyncio.Future[RequestResponse] = asyncio.get_running_loop().create_future()
        self._slots[request_id] = slot
        return slot

    def resolve(self, request_id: str, response: RequestResponse) -> None:
        """Hand a reply to the caller waiting on its id.

        Replies for unknown ids (e.g. the caller already gave up) are dropped.
        """
        slot = self._slots.pop(request_id, None)
        if slot is None:
            logger.debug(f"Dropping reply for unknown request id {request_id!r}")
            return
        if slot.done():
            logger.debug(f"Dropping reply for abandoned request id {request_id!r}")
            return
        slot.set_result(response)

    def cancel(self, request_id: str) -> None:
        """Remove a slot without resolving it (caller abandoned the wait)."""
        slot = self._slots.pop(request_id, None)
        if slot is not None and not slot.done():
            slot.cancel()

    def fail_all(self, error: BaseException) -> int:
        """Fail every outstanding slot with its own copy of `error` and close the table.

        Returns the number of slots failed. Calling it again is a no-op.
        """
        if self._closed:
            return 0
        self._closed = True

        slots, self._slots = self._slots, {}
        failed = 0
        for request_id, slot in slots.items():
            if slot.done():
                continue
            slot.set_exception(copy.copy(error))
            failed += 1
            logger.debug(f"Failed pending request {request_id!r}: {error}")
        return failed
