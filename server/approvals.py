"""Approval collaborator that parks candidates until an HTTP decision arrives."""

import asyncio
from dataclasses import dataclass

from models.illustration import Candidate
from orchestrator.collaborators import BaseApprover
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class PendingApproval:
    message_id: int
    candidate: Candidate
    future: asyncio.Future


class PendingApprovals(BaseApprover):
    def __init__(self, timeout_s: float | None = None):
        """
        Args:
            timeout_s: How long a candidate waits for a decision; None waits forever.
                A timed-out candidate counts as rejected.
        """
        self.timeout_s = timeout_s
        self._pending: dict[int, PendingApproval] = {}

    async def present_for_approval(self, candidate: Candidate, *, message_id: int) -> bool:
        future = asyncio.get_running_loop().create_future()
        self._pending[message_id] = PendingApproval(message_id, candidate, future)
        logger.info(f"Awaiting approval for message {message_id}: {candidate.url}")
        try:
            return await asyncio.wait_for(future, timeout=self.timeout_s)
        except asyncio.TimeoutError:
            logger.info(f"Approval for message {message_id} timed out; treating as rejected")
            return False
        finally:
            self._pending.pop(message_id, None)

    def resolve(self, message_id: int, approved: bool) -> bool:
        """Deliver a decision; False when nothing is pending for the message."""
        entry = self._pending.get(message_id)
        if entry is None or entry.future.done():
            return False
        entry.future.set_result(bool(approved))
        return True

    def pending(self) -> list[PendingApproval]:
        return sorted(self._pending.values(), key=lambda p: p.message_id)

    def cancel_all(self) -> None:
        for entry in list(self._pending.values()):
            if not entry.future.done():
                entry.future.set_result(False)
