"""
HOLDER COUNT JOB
================
Counts distinct holders of a mint one DAS page per call, so no single call
has to walk the whole account list.

State lives in the shared TTLCache under `holders_job:{mint}`; the final
count is cached separately under `holders_final:{mint}`. A job older than
`holders_job_ttl` is dropped and reported as expired instead of resumed.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from .cache import HOLDERS_FINAL_TTL, TTLCache
from .config import Thresholds
from .errors import GuardError

log = logging.getLogger("pumpguard.holders")


@dataclass
class HolderJobState:
    owners: set = field(default_factory=set)
    cursor: Optional[str] = None
    pages: int = 0
    started_at: float = 0.0
    updated_at: float = 0.0


class HolderCountJob:
    def __init__(self, ledger, cache: TTLCache, thresholds: Thresholds = None,
                 call_timeout: float = 12.0, clock: Callable[[], float] = time.monotonic):
        self.ledger = ledger
        self.cache = cache
        self.th = thresholds or Thresholds()
        self.call_timeout = call_timeout
        self.clock = clock

    @staticmethod
    def job_key(mint: str) -> str:
        return f"holders_job:{mint}"

    @staticmethod
    def final_key(mint: str) -> str:
        return f"holders_final:{mint}"

    @property
    def _state_ttl(self) -> float:
        # outlives the staleness guard so an old job is reported, not silently forgotten
        return self.th.holders_job_ttl * 3

    def final_count(self, mint: str) -> Optional[int]:
        entry = self.cache.get(self.final_key(mint))
        return entry["holders"] if entry else None

    def _fresh_state(self, mint: str) -> HolderJobState:
        now = self.clock()
        state = HolderJobState(started_at=now, updated_at=now)
        self.cache.set(self.job_key(mint), state, self._state_ttl)
        return state

    async def start(self, mint: str) -> dict:
        """Discard any previous job for `mint` and fetch the first page."""
        self._fresh_state(mint)
        return await self.step(mint)

    def reset(self, mint: str) -> dict:
        self.cache.delete(self.job_key(mint))
        return {"status": "reset"}

    async def step(self, mint: str) -> dict:
        """Advance the job by exactly one page."""
        key = self.job_key(mint)
        state = self.cache.get(key)
        if state is None:
            state = self._fresh_state(mint)

        if self.clock() - state.started_at > self.th.holders_job_ttl:
            self.cache.delete(key)
            log.info(f"[Holders] job for {mint[:12]} expired after {state.pages} pages")
            return {"status": "expired", "hint": "Restart holders job"}

        limit = self.th.holders_page_limit
        try:
            page = await asyncio.wait_for(
                self.ledger.get_token_accounts_page(mint, state.cursor, limit),
                timeout=self.call_timeout,
            )
        except asyncio.TimeoutError:
            log.warning(f"[Holders] page {state.pages + 1} timed out for {mint[:12]}")
            return {"status": "error", "error": "timeout"}
        except GuardError as e:
            log.warning(f"[Holders] page {state.pages + 1} failed for {mint[:12]}: {e}")
            return {"status": "error", "error": str(e)}

        for ta in page.accounts:
            if ta.owner and ta.amount > 0:
                state.owners.add(ta.owner)
        state.pages += 1
        state.updated_at = self.clock()

        if not page.cursor or not page.accounts:
            holders = len(state.owners)
            self.cache.set(self.final_key(mint), {"holders": holders, "pages": state.pages}, HOLDERS_FINAL_TTL)
            self.cache.delete(key)
            log.info(f"[Holders] {mint[:12]} done: {holders} holders in {state.pages} pages")
            return {
                "status": "done",
                "holders": holders,
                "pages": state.pages,
                "scanned_accounts": state.pages * limit,
            }

        if state.pages >= self.th.holders_max_pages:
            self.cache.delete(key)
            log.warning(f"[Holders] {mint[:12]} hit the {state.pages}-page ceiling")
            return {"status": "error", "error": "page_budget_exhausted"}

        state.cursor = page.cursor
        self.cache.set(key, state, self._state_ttl)
        return {
            "status": "running",
            "pages": state.pages,
            "holders_so_far": len(state.owners),
            "scanned_accounts": state.pages * limit,
        }
