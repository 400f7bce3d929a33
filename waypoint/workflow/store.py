# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Resume Token Store - paused executions waiting for an external action

In-memory and synchronous. Expired records are swept lazily, whenever the
store is touched; there is no background timer. Snapshots are deep-copied
in and out so a stored state never aliases a live execution.
"""

import copy
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 60


@dataclass
class ResumeRecord:
    token: str
    workflow_id: str
    state: Dict[str, Any]
    created_at: float
    expires_at: float

    def expired(self, now: float) -> bool:
        return now > self.expires_at


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


class ResumeTokenStore:
    """
    Token -> paused execution snapshot.

    A token that was deleted or has expired never resolves again.
    """

    def __init__(self, default_ttl: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.time):
        self.default_ttl = default_ttl
        self.clock = clock
        self._records: Dict[str, ResumeRecord] = {}

    def save(self, workflow_id: str, state: Dict[str, Any], ttl: Optional[float] = None) -> str:
        """Persist a snapshot and return its resume token"""
        token = f"{workflow_id}-{uuid.uuid4()}"
        now = self.clock()
        expires_at = now + (ttl if ttl is not None else self.default_ttl)

        self._records[token] = ResumeRecord(
            token=token,
            workflow_id=workflow_id,
            state=copy.deepcopy(state),
            created_at=now,
            expires_at=expires_at,
        )

        logger.debug(
            "Saved workflow state",
            extra={"workflow_id": workflow_id, "resume_token": token, "expires_at": _iso(expires_at)}
        )

        self.cleanup_expired()
        return token

    def _live_record(self, token: str) -> Optional[ResumeRecord]:
        record = self._records.get(token)
        if record is None:
            return None
        if record.expired(self.clock()):
            logger.warning(
                "Resume token expired",
                extra={"resume_token": token, "expired_at": _iso(record.expires_at)}
            )
            del self._records[token]
            return None
        return record

    def load(self, token: str) -> Optional[Dict[str, Any]]:
        """Return the stored state without consuming it, or None"""
        record = self._live_record(token)
        if record is None:
            logger.warning("Resume token not found", extra={"resume_token": token})
            return None

        logger.debug("Loaded workflow state", extra={"workflow_id": record.workflow_id, "resume_token": token})
        return copy.deepcopy(record.state)

    def delete(self, token: str) -> bool:
        deleted = self._records.pop(token, None) is not None
        if deleted:
            logger.debug("Deleted workflow state", extra={"resume_token": token})
        return deleted

    def has(self, token: str) -> bool:
        return self._live_record(token) is not None

    def get_workflow_id(self, token: str) -> Optional[str]:
        record = self._live_record(token)
        return record.workflow_id if record else None

    def cleanup_expired(self) -> int:
        now = self.clock()
        expired = [token for token, record in self._records.items() if record.expired(now)]
        for token in expired:
            del self._records[token]

        if expired:
            logger.debug("Cleaned up expired workflow states", extra={"count": len(expired)})
        return len(expired)

    def active_tokens(self) -> List[str]:
        self.cleanup_expired()
        return list(self._records)

    def count(self) -> int:
        self.cleanup_expired()
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()
        logger.debug("Cleared all workflow states")
