from __future__ import annotations

import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from rfq_sheet.core.config import settings
from rfq_sheet.core.logging import get_logger, log_event
from rfq_sheet.modules.quota.store import QuotaStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class QuotaDecision:
    allowed: bool
    count: int
    limit: int
    window_seconds: int
    resets_at: float

    def retry_after_seconds(self, *, now: float) -> int:
        return max(int(math.ceil(self.resets_at - now)), 0)


class UploadQuotaExceededError(RuntimeError):
    def __init__(self, decision: QuotaDecision, *, now: float) -> None:
        hours = decision.window_seconds // 3600
        super().__init__(
            f"Upload limit reached: {decision.limit} uploads per {hours} hours. "
            "Please try again later."
        )
        self.decision = decision
        self.retry_after_seconds = decision.retry_after_seconds(now=now)


class UploadQuota:
    """
    Fixed-window upload allowance per client identity.

    The window opens on a client's first upload and lasts `window_seconds`;
    within it at most `limit` uploads are admitted.
    """

    def __init__(
        self,
        store: QuotaStore,
        *,
        limit: int | None = None,
        window_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self.limit = int(limit if limit is not None else settings.upload_quota_limit)
        self.window_seconds = int(
            window_seconds if window_seconds is not None else settings.upload_quota_window_seconds
        )
        self._clock = clock

    def consume(self, client_id: str) -> QuotaDecision:
        """Count one upload for `client_id`; raise `UploadQuotaExceededError` past the limit."""
        window = self._store.increment(key=client_id, window_seconds=self.window_seconds)
        decision = QuotaDecision(
            allowed=window.count <= self.limit,
            count=window.count,
            limit=self.limit,
            window_seconds=self.window_seconds,
            resets_at=window.resets_at,
        )
        if not decision.allowed:
            now = self._clock()
            log_event(
                logger,
                "quota.exceeded",
                quota_client=client_id,
                count=decision.count,
                limit=decision.limit,
                retry_after_seconds=decision.retry_after_seconds(now=now),
            )
            raise UploadQuotaExceededError(decision, now=now)
        log_event(
            logger,
            "quota.consumed",
            quota_client=client_id,
            count=decision.count,
            limit=decision.limit,
        )
        return decision

    def refund(self, client_id: str) -> None:
        """Give back one upload counted by `consume` whose request then failed server-side."""
        window = self._store.decrement(key=client_id)
        log_event(
            logger,
            "quota.refunded",
            quota_client=client_id,
            count=window.count if window else 0,
            limit=self.limit,
        )

    def remaining(self, client_id: str) -> int:
        window = self._store.get(key=client_id)
        used = window.count if window else 0
        return max(self.limit - used, 0)
