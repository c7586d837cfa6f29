"""
TRANSACTION PATTERNS
Launch-window heuristics over a token's earliest enhanced transactions:
bundled launch / sniper burst, cluster funding, early dev dump.
"""

from collections import defaultdict
from typing import Optional

from .config import Thresholds
from .explorer import explorer_address, explorer_token, explorer_tx
from .models import TokenSupply
from .signals import Signal, SignalId

DEFAULTS = Thresholds()


def launch_timestamp(txs: list) -> Optional[int]:
    """Earliest known timestamp among the transactions."""
    stamps = [tx.timestamp for tx in txs if tx.timestamp is not None]
    return min(stamps) if stamps else None


def _in_window(tx, launch: int, window: int) -> bool:
    if tx.timestamp is None:
        return False
    dt = tx.timestamp - launch
    return 0 <= dt <= window


def early_buyers(txs: list, mint: str, launch: Optional[int], window: int) -> list:
    """Unique receivers of `mint` within `window` seconds of launch, first-seen order."""
    if launch is None:
        return []
    seen = {}
    for tx in txs:
        if not _in_window(tx, launch, window):
            continue
        for tt in tx.token_transfers:
            if tt.mint == mint and tt.to_account and tt.amount > 0:
                seen.setdefault(tt.to_account, tx.signature)
    return list(seen)


def _first_signature(txs: list) -> Optional[str]:
    return next((tx.signature for tx in txs if tx.signature), None)


def burst_signal(mint: str, txs: list, launch: Optional[int],
                 th: Thresholds = DEFAULTS) -> Optional[Signal]:
    short = early_buyers(txs, mint, launch, th.burst_short_window)
    wide = early_buyers(txs, mint, launch, th.burst_long_window)

    sig = _first_signature(txs)
    proof = [explorer_tx(sig)] if sig else [explorer_token("sol", mint)]

    if len(short) >= th.burst_short_min:
        return Signal(
            SignalId.BUNDLED_LAUNCH_OR_MEV,
            "Many unique buyers in first minute (possible bundled launch / snipers / MEV)",
            th.burst_weight, f"buyers_60s={len(short)}", proof,
        )
    if len(wide) >= th.burst_long_min:
        return Signal(
            SignalId.BUNDLED_LAUNCH_OR_MEV,
            "High buyer burst in first minutes (possible snipers / MEV)",
            th.burst_weight, f"buyers_3m={len(wide)}", proof,
        )
    return None


def cluster_funding_signal(mint: str, txs: list, launch: Optional[int],
                           th: Thresholds = DEFAULTS) -> Optional[Signal]:
    """Funder that sent native currency to the most distinct early buyers."""
    if launch is None:
        return None
    buyers = set(early_buyers(txs, mint, launch, th.burst_long_window))
    if not buyers:
        return None

    funded = defaultdict(set)
    first_sig = {}
    for tx in txs:
        if not _in_window(tx, launch, th.funding_window):
            continue
        for nt in tx.native_transfers:
            if not nt.from_account or not nt.to_account or nt.amount <= 0:
                continue
            if nt.to_account not in buyers:
                continue
            funded[nt.from_account].add(nt.to_account)
            if tx.signature:
                first_sig.setdefault(nt.from_account, tx.signature)

    best, best_count = None, 0
    for funder, targets in funded.items():
        # strictly greater: first funder reaching the top count wins ties
        if len(targets) > best_count:
            best, best_count = funder, len(targets)

    if best is None or best_count < th.funding_min_buyers:
        return None

    sig = first_sig.get(best)
    return Signal(
        SignalId.CLUSTER_FUNDING,
        "Multiple early buyers funded by the same wallet (cluster funding)",
        th.funding_weight, f"funded_buyers={best_count}",
        [explorer_address("sol", best), explorer_tx(sig) if sig else explorer_token("sol", mint)],
    )


def dev_dump_signal(mint: str, txs: list, launch: Optional[int], dev: Optional[str],
                    supply: Optional[TokenSupply] = None, dev_proof=(),
                    th: Thresholds = DEFAULTS) -> Optional[Signal]:
    """Dev candidate moving a large amount of the token out soon after launch."""
    if not dev or launch is None:
        return None

    total_out = 0.0
    first_dump = None
    for tx in txs:
        if not _in_window(tx, launch, th.dump_window):
            continue
        for tt in tx.token_transfers:
            if tt.mint == mint and tt.from_account == dev and tt.amount > 0:
                total_out += tt.amount
                if first_dump is None and tx.signature:
                    first_dump = tx.signature

    if total_out <= 0:
        return None

    supply_ui = supply.ui_amount if supply is not None else None
    if supply_ui and supply_ui > 0:
        pct = total_out / supply_ui * 100
        if pct < th.dump_min_pct:
            return None
        value = f"dev_out={pct:.2f}% (first 60m)"
    else:
        if total_out < th.dump_min_units:
            return None
        value = f"dev_out={round(total_out)} (first 60m)"

    proof = [explorer_address("sol", dev),
             explorer_tx(first_dump) if first_dump else explorer_token("sol", mint)]
    proof.extend(dev_proof or ())
    return Signal(
        SignalId.DEV_DUMP_EARLY,
        "Dev wallet moved a significant amount soon after launch (possible early dump)",
        th.dump_weight, value, proof,
    )


def tx_pattern_signals(mint: str, txs: list, dev: Optional[str] = None,
                       supply: Optional[TokenSupply] = None, dev_proof=(),
                       th: Thresholds = DEFAULTS) -> list:
    launch = launch_timestamp(txs)
    found = [
        burst_signal(mint, txs, launch, th),
        cluster_funding_signal(mint, txs, launch, th),
        dev_dump_signal(mint, txs, launch, dev, supply, dev_proof, th),
    ]
    return [s for s in found if s is not None]
