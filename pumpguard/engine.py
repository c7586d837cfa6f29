"""
RISK ENGINE
===========
Runs the detectors for one token and reduces their signals to a RiskResult.

Two phases:
- fast: authorities, supply, largest holders, dev candidate, age, program
- deep: liquidity (LP burn) and launch-window transaction patterns

Both run concurrently and share the dev-candidate lookup through one task.
The deep phase is bounded by `deep_timeout` and cancelled when it runs
over; whatever it did not deliver is treated as absent data. Every upstream
call is bounded by `call_timeout`.

A failing check never fails the evaluation: the failure is logged, listed
in `meta["failures"]`, and the remaining signals are scored. Only when no
live check produced data does the engine return the DEMO fallback.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

import httpx

from . import detectors
from .address import EVM_CHAINS, is_solana_address, validate_subject
from .cache import DEEP_TTL, MISSING, TTLCache, cache_key
from .config import GuardConfig, Thresholds
from .errors import UpstreamTimeout
from .explorer import explorer_token
from .holders import HolderCountJob
from .models import DeepReport, DevCandidate, FastReport, MintAuthorities, RiskResult, SignatureInfo
from .pools import PoolIndex
from .scoring import (
    VERDICT_COPY, category_subtotals, estimate_confidence, level_from_score,
    merge_signals, score_signals, scored_categories, verdict_from_score,
)
from .signals import RiskCategory, Signal, SignalId
from .sources import HeliusTransactions, SolanaLedger
from .tx_patterns import launch_timestamp, tx_pattern_signals

log = logging.getLogger("pumpguard.engine")

FALLBACK_SCORE = 10


@dataclass
class Origin:
    """Who made the token and when: shared by the fast and deep phases."""
    auth: Optional[MintAuthorities] = None
    first: Optional[SignatureInfo] = None
    launch_ts: Optional[int] = None
    dev: DevCandidate = field(default_factory=DevCandidate)
    failures: list = field(default_factory=list)
    live_checks: int = 0


def fallback_result(chain: str, address: str, failures: list) -> RiskResult:
    signal = Signal(
        SignalId.DEMO_MODE,
        "Live data unavailable, showing a fallback estimate",
        0, "fallback", [explorer_token(chain, address)],
    )
    verdict = verdict_from_score(FALLBACK_SCORE)
    return RiskResult(
        chain=chain,
        address=address,
        score=FALLBACK_SCORE,
        level=level_from_score(FALLBACK_SCORE),
        confidence="LOW",
        mode="DEMO",
        verdict=verdict,
        signals=(signal,),
        categories=scored_categories(category_subtotals([signal])),
        meta={"failures": list(failures), "verdict_copy": VERDICT_COPY[verdict]},
    )


class RiskEngine:
    """
    Token risk evaluation.

    Sources can be injected (tests do); by default they are built over the
    given httpx session from `config`.
    """

    def __init__(self, session: httpx.AsyncClient = None, config: GuardConfig = None,
                 cache: TTLCache = None, thresholds: Thresholds = None,
                 ledger=None, transactions=None, pools=None, clock=time.time):
        self.config = config or GuardConfig.from_env()
        self.cache = cache if cache is not None else TTLCache()
        self.th = thresholds or Thresholds()
        self.ledger = ledger or SolanaLedger(session, self.config, self.cache, self.th.signature_page_budget)
        self.transactions = transactions or HeliusTransactions(session, self.config)
        self.pools = pools or PoolIndex(session, self.cache)
        self.holders = HolderCountJob(self.ledger, self.cache, self.th, self.config.call_timeout)
        self.clock = clock

    # =========================================================
    # PUBLIC
    # =========================================================

    async def evaluate(self, chain: str, address: str) -> RiskResult:
        """
        Score one token. Raises InvalidSubjectError for a bad chain/address,
        never for upstream trouble.
        """
        chain, address = validate_subject(chain, address)

        key = cache_key("score", chain, address)
        hit = self.cache.get(key)
        if hit is not None:
            log.info(f"[Engine] cache hit {address[:12]}")
            return hit

        if chain in EVM_CHAINS:
            return fallback_result(chain, address, [f"{chain}: no live path for EVM chains"])

        start = time.monotonic()
        origin_task = asyncio.create_task(self._find_origin(address))
        deep_task = asyncio.create_task(self._deep(address, origin_task))

        try:
            fast = await self._fast(address, origin_task)
        except BaseException:
            deep_task.cancel()
            origin_task.cancel()
            raise

        failures = list(fast.failures)
        deep, deep_status = None, "done"
        try:
            deep = await asyncio.wait_for(deep_task, timeout=self.config.deep_timeout)
        except asyncio.TimeoutError:
            deep_status = "timeout"
            failures.append(f"deep: timed out after {self.config.deep_timeout:.0f}s")
            log.warning(f"[Engine] deep phase timed out for {address[:12]}")
        except Exception as e:
            deep_status = "error"
            failures.append(f"deep: {e}")
            log.warning(f"[Engine] deep phase failed for {address[:12]}: {e}")

        live_checks = fast.live_checks
        deep_signals = []
        if deep is not None:
            failures.extend(deep.failures)
            live_checks += deep.live_checks
            deep_signals = deep.signals

        if live_checks == 0:
            log.warning(f"[Engine] no live data for {address[:12]}, falling back ({len(failures)} failures)")
            return fallback_result(chain, address, failures)

        signals = merge_signals(fast.signals, deep_signals)
        if not any(s.category == RiskCategory.LIQUIDITY for s in signals):
            signals.append(detectors.lp_unknown(address, "not_checked"))
        if failures:
            signals.append(Signal(
                SignalId.LIVE_ERROR, "Some live checks failed (see meta.failures)",
                0, f"failed={len(failures)}",
            ))

        result = self._result(chain, address, signals, fast, deep, deep_status, failures,
                              int((time.monotonic() - start) * 1000))
        self.cache.set(key, result, self.config.score_ttl)
        log.info(f"[Engine] {address[:12]} score={result.score} {result.level} "
                 f"conf={result.confidence} ({result.meta['ms']}ms)")
        return result

    async def fast(self, mint: str) -> FastReport:
        _, mint = validate_subject("sol", mint)
        return await self._fast(mint, asyncio.create_task(self._find_origin(mint)))

    async def deep(self, mint: str) -> DeepReport:
        _, mint = validate_subject("sol", mint)
        origin_task = asyncio.create_task(self._find_origin(mint))
        try:
            return await asyncio.wait_for(self._deep(mint, origin_task), timeout=self.config.deep_timeout)
        finally:
            if not origin_task.done():
                origin_task.cancel()

    # =========================================================
    # RESULT
    # =========================================================

    def _result(self, chain, address, signals, fast: FastReport, deep: Optional[DeepReport],
                deep_status: str, failures: list, ms: int) -> RiskResult:
        score = score_signals(signals)
        verdict = verdict_from_score(score)
        meta = {
            "dev_candidate": fast.dev.address,
            "dev_reason": fast.dev.reason,
            "age_seconds": fast.age_seconds,
            "top10_percent": fast.top10_percent,
            "dev_hold_percent": fast.dev_hold_percent,
            "top_holders": fast.top_holders,
            "holders": self.holders.final_count(address),
            "deep": deep_status,
            "tx_checked": deep.tx_checked if deep else 0,
            "launch_ts": (deep.launch_ts if deep and deep.launch_ts else fast.launch_ts),
            "pool": deep.to_dict()["pool"] if deep else None,
            "failures": failures,
            "verdict_copy": VERDICT_COPY[verdict],
            "ms": ms,
        }
        return RiskResult(
            chain=chain,
            address=address,
            score=score,
            level=level_from_score(score),
            confidence=estimate_confidence(True, fast.age_seconds, fast.top10_percent,
                                           fast.dev.address, self.config.premium),
            mode="LIVE",
            verdict=verdict,
            signals=tuple(signals),
            categories=scored_categories(category_subtotals(signals)),
            meta=meta,
        )

    # =========================================================
    # ON-CHAIN CHECKS
    # =========================================================

    async def _timed(self, coro, source: str):
        try:
            return await asyncio.wait_for(coro, timeout=self.config.call_timeout)
        except asyncio.TimeoutError as e:
            raise UpstreamTimeout(source, f"no answer within {self.config.call_timeout:.0f}s") from e

    @staticmethod
    def _failed(failures: list, check: str, mint: str, e: Exception):
        log.warning(f"[Engine] {check} check failed for {mint[:12]}: {e}")
        failures.append(f"{check}: {e}")

    async def _find_origin(self, mint: str) -> Origin:
        """Authorities + earliest signature -> dev candidate and launch time."""
        origin = Origin()
        auth, sigs = await asyncio.gather(
            self._timed(self.ledger.get_mint_authorities(mint), "rpc"),
            self._timed(self.ledger.get_earliest_signatures(mint), "rpc"),
            return_exceptions=True,
        )

        if isinstance(auth, Exception):
            self._failed(origin.failures, "authorities", mint, auth)
        else:
            origin.auth = auth
            origin.live_checks += 1

        if isinstance(sigs, Exception):
            self._failed(origin.failures, "signatures", mint, sigs)
        elif sigs:
            origin.live_checks += 1
            origin.first = sigs[0]
            origin.launch_ts = sigs[0].block_time
            if origin.launch_ts is None and sigs[0].slot is not None:
                try:
                    origin.launch_ts = await self._timed(self.ledger.get_block_time(sigs[0].slot), "rpc")
                except Exception as e:
                    self._failed(origin.failures, "block_time", mint, e)

        has_authority = origin.auth and (origin.auth.mint_authority or origin.auth.freeze_authority)
        signer = None
        if origin.first and not has_authority:
            try:
                signer = await self._timed(self.ledger.get_first_signer(origin.first.signature), "rpc")
            except Exception as e:
                self._failed(origin.failures, "first_signer", mint, e)

        origin.dev = detectors.pick_dev_candidate(
            origin.auth, signer, origin.first.signature if origin.first else None)
        return origin

    async def _fast(self, mint: str, origin_task) -> FastReport:
        report = FastReport(mint=mint)

        supply, holders, program = await asyncio.gather(
            self._timed(self.ledger.get_supply(mint), "rpc"),
            self._timed(self.ledger.get_largest_holders(mint, self.th.largest_accounts), "rpc"),
            self._timed(self.ledger.get_account_owner_program(mint), "rpc"),
            return_exceptions=True,
        )
        origin = await asyncio.shield(origin_task)
        report.failures.extend(origin.failures)
        report.live_checks += origin.live_checks
        report.dev = origin.dev
        report.launch_ts = origin.launch_ts

        if isinstance(supply, Exception):
            self._failed(report.failures, "supply", mint, supply)
            supply = None
        else:
            report.supply = supply
            report.live_checks += 1
        if isinstance(holders, Exception):
            self._failed(report.failures, "holders", mint, holders)
            holders = []
        else:
            report.live_checks += 1
        if isinstance(program, Exception):
            self._failed(report.failures, "program", mint, program)
            program = None
        else:
            report.live_checks += 1

        th = self.th
        signals = []
        if origin.auth is not None:
            signals += detectors.authority_signals(mint, origin.auth, th)

        if holders:
            report.top10_percent = detectors.top10_percent(holders, supply)
            report.dev_hold_percent = detectors.dev_hold_percent(holders, supply, origin.dev.address)
            report.top_holders = detectors.top_holders_breakdown(holders, supply, origin.dev.address)
        signals += detectors.distribution_signals(mint, report.top10_percent, report.dev_hold_percent, th)

        signals += detectors.dev_signals(mint, origin.dev)

        if origin.launch_ts is not None:
            report.age_seconds = max(0, int(self.clock()) - origin.launch_ts)
        signals += detectors.token_age_signals(mint, report.age_seconds, th)

        signals += detectors.contract_signals(mint, program, th)

        report.signals = signals
        return report

    async def _check_liquidity(self, mint: str) -> tuple:
        """LP signal for the token's primary pool, and the pool itself (None when unlisted)."""
        pool = await self._timed(self.pools.discover_primary_pool(mint), "dexscreener")
        if pool is None:
            return detectors.liquidity_signal(mint, None, None, None, self.th), None

        lp_mint = None
        if pool.dex_family.startswith("raydium"):
            lp_mint = await self._timed(self.pools.resolve_lp_mint(pool.pool_id), "raydium")
        if not lp_mint or not is_solana_address(lp_mint):
            return detectors.liquidity_signal(mint, pool, lp_mint, None, self.th), pool

        lp_supply, lp_holders = await asyncio.gather(
            self._timed(self.ledger.get_supply(lp_mint), "rpc"),
            self._timed(self.ledger.get_largest_holders(lp_mint, self.th.lp_largest_accounts), "rpc"),
            return_exceptions=True,
        )
        for res in (lp_supply, lp_holders):
            if isinstance(res, Exception):
                raise res
        burn = detectors.lp_burn_from_holders(lp_mint, lp_supply, lp_holders)
        log.info(f"[Engine] LP {lp_mint[:12]} burned {burn.burned_pct:.2%}")
        return detectors.liquidity_signal(mint, pool, lp_mint, burn, self.th), pool

    async def _deep(self, mint: str, origin_task) -> DeepReport:
        key = cache_key("deep", "sol", mint)
        hit = self.cache.get(key, MISSING)
        if hit is not MISSING:
            return hit

        t0 = time.monotonic()
        report = DeepReport(mint=mint)

        lp, txs, supply = await asyncio.gather(
            self._check_liquidity(mint),
            self._timed(self.transactions.get_transactions_by_address(
                mint, self.th.tx_fetch_limit, "asc"), "helius"),
            self._timed(self.ledger.get_supply(mint), "rpc"),
            return_exceptions=True,
        )

        if isinstance(lp, Exception):
            self._failed(report.failures, "liquidity", mint, lp)
            report.signals.append(detectors.lp_unknown(mint, "upstream_error"))
        else:
            signal, report.pool = lp
            report.signals.append(signal)
            report.live_checks += 1

        if isinstance(supply, Exception):
            # already reported by the fast phase; dump check falls back to absolute units
            supply = None

        # shield: a cancelled deep phase must not cancel the shared lookup
        origin = await asyncio.shield(origin_task)

        if isinstance(txs, Exception):
            self._failed(report.failures, "tx_patterns", mint, txs)
        else:
            report.live_checks += 1
            report.tx_checked = len(txs)
            report.launch_ts = launch_timestamp(txs)
            report.signals += tx_pattern_signals(
                mint, txs, origin.dev.address, supply, origin.dev.proof, self.th)

        report.elapsed_ms = int((time.monotonic() - t0) * 1000)
        self.cache.set(key, report, DEEP_TTL)
        return report
