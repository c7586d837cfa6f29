"""
DETECTORS
=========
Pure functions from fetched ledger facts to signals. None of them touch the
network; the engine fetches and hands the facts in.

Weights and bands come from config.Thresholds.
"""

import logging
from typing import Optional

from .address import is_solana_address
from .config import Thresholds
from .explorer import explorer_address, explorer_token, explorer_tx
from .models import DevCandidate, LpBurn, MintAuthorities, PoolInfo, TokenSupply
from .signals import Signal, SignalId
from .sources import INCINERATOR, SPL_TOKEN_PROGRAM, TOKEN_2022_PROGRAM

log = logging.getLogger("pumpguard.detectors")

DEFAULTS = Thresholds()


# ── Permissions ──────────────────────────────────────────────────────

def authority_signals(mint: str, auth: MintAuthorities, th: Thresholds = DEFAULTS) -> list:
    proof = [explorer_token("sol", mint)]
    out = []
    if auth.mint_authority:
        out.append(Signal(
            SignalId.MINT_AUTHORITY_PRESENT,
            "Mint authority is still present (supply can be increased)",
            th.mint_authority_weight, auth.mint_authority, proof,
        ))
    if auth.freeze_authority:
        out.append(Signal(
            SignalId.FREEZE_AUTHORITY_PRESENT,
            "Freeze authority is present (accounts can be frozen)",
            th.freeze_authority_weight, auth.freeze_authority, proof,
        ))
    return out


# ── Distribution ─────────────────────────────────────────────────────

def share_of_supply(amount_raw: int, supply: Optional[TokenSupply]) -> Optional[float]:
    """Percent of supply, or None when supply is unknown/zero or the result is impossible."""
    if supply is None or supply.amount <= 0:
        return None
    pct = amount_raw / supply.amount * 100
    if pct < 0 or pct > 100.0001:
        log.warning(f"[Distribution] discarding impossible share {pct:.2f}%")
        return None
    return min(pct, 100.0)


def top10_percent(holders: list, supply: Optional[TokenSupply]) -> Optional[float]:
    return share_of_supply(sum(h.amount for h in holders[:10]), supply)


def dev_hold_percent(holders: list, supply: Optional[TokenSupply],
                     dev_address: Optional[str]) -> Optional[float]:
    if not dev_address:
        return None
    held = sum(h.amount for h in holders if h.owner == dev_address or h.address == dev_address)
    return share_of_supply(held, supply)


def distribution_signals(mint: str, top10: Optional[float], dev_pct: Optional[float],
                         th: Thresholds = DEFAULTS) -> list:
    """One top-10 band at most, one dev band at most."""
    proof = [explorer_token("sol", mint)]
    out = []

    if top10 is not None:
        bands = [
            (th.top10_high_pct, SignalId.TOP10_GT_80, "Top holders concentration is extreme", th.top10_high_weight),
            (th.top10_mid_pct, SignalId.TOP10_GT_60, "Top holders concentration is high", th.top10_mid_weight),
            (th.top10_low_pct, SignalId.TOP10_GT_40, "Top holders concentration is elevated", th.top10_low_weight),
        ]
        for limit, sid, label, weight in bands:
            if top10 > limit:
                out.append(Signal(sid, label, weight, f"top10={top10:.1f}%", proof))
                break

    if dev_pct is not None:
        bands = [
            (th.dev_high_pct, SignalId.DEV_HOLDS_GT_50, "Dev wallet holds a majority of supply", th.dev_high_weight),
            (th.dev_mid_pct, SignalId.DEV_HOLDS_GT_30, "Dev wallet holds a large share of supply", th.dev_mid_weight),
        ]
        for limit, sid, label, weight in bands:
            if dev_pct > limit:
                out.append(Signal(sid, label, weight, f"dev={dev_pct:.1f}%", proof))
                break

    return out


def top_holders_breakdown(holders: list, supply: Optional[TokenSupply],
                          dev_address: Optional[str], limit: int = 10) -> list:
    rows = []
    for rank, h in enumerate(holders[:limit], start=1):
        pct = share_of_supply(h.amount, supply)
        tag = "DEV" if dev_address and dev_address in (h.owner, h.address) else None
        rows.append({
            "rank": rank,
            "owner": h.owner,
            "token_account": h.address,
            "percent": round(pct, 4) if pct is not None else None,
            "ui_amount": h.ui_amount,
            "tag": tag,
        })
    return rows


# ── Dev candidate ────────────────────────────────────────────────────

def pick_dev_candidate(auth: Optional[MintAuthorities], earliest_signer: Optional[str] = None,
                       earliest_signature: Optional[str] = None) -> DevCandidate:
    """mint authority > freeze authority > earliest signer > unknown"""
    proof = [explorer_tx(earliest_signature)] if earliest_signature else []
    if auth and auth.mint_authority:
        return DevCandidate(auth.mint_authority, "mintAuthority", proof)
    if auth and auth.freeze_authority:
        return DevCandidate(auth.freeze_authority, "freezeAuthority", proof)
    if earliest_signer:
        return DevCandidate(earliest_signer, "earliestSigner", proof)
    return DevCandidate(None, "unknown", proof)


def dev_signals(mint: str, dev: DevCandidate) -> list:
    proof = dev.proof or [explorer_token("sol", mint)]
    if not dev.address:
        return [Signal(SignalId.DEV_UNKNOWN, "Dev wallet candidate not found", 0, "", proof)]
    out = [Signal(SignalId.DEV_CANDIDATE, f"Dev wallet candidate ({dev.reason})", 0, dev.address, proof)]
    if dev.reason == "earliestSigner":
        out.append(Signal(
            SignalId.DEV_EARLY_SIGNER,
            "Dev was earliest signer (possible deployer/initiator)",
            0, dev.address, proof,
        ))
    return out


# ── Token age ────────────────────────────────────────────────────────

def token_age_signals(mint: str, age_seconds: Optional[int], th: Thresholds = DEFAULTS) -> list:
    if age_seconds is None:
        return []
    proof = [explorer_token("sol", mint)]
    if age_seconds < 3600:
        return [Signal(SignalId.TOKEN_AGE_LT_1H, "Token is very new (<1h)",
                       th.age_1h_weight, f"{max(1, age_seconds // 60)}m", proof)]
    if age_seconds < 6 * 3600:
        return [Signal(SignalId.TOKEN_AGE_LT_6H, "Token is new (1-6h)",
                       th.age_6h_weight, f"{age_seconds // 3600}h", proof)]
    if age_seconds < 24 * 3600:
        return [Signal(SignalId.TOKEN_AGE_LT_24H, "Token is fresh (6-24h)",
                       th.age_24h_weight, f"{age_seconds // 3600}h", proof)]
    return []


# ── Contract ─────────────────────────────────────────────────────────

def contract_signals(mint: str, owner_program: Optional[str], th: Thresholds = DEFAULTS) -> list:
    if not owner_program or owner_program == SPL_TOKEN_PROGRAM:
        return []
    if owner_program == TOKEN_2022_PROGRAM:
        label = "Token is Token-2022 (extensions / hooks possible)"
    else:
        label = "Token account is owned by a non-standard program"
    return [Signal(SignalId.NONSTANDARD_TRANSFER, label, th.nonstandard_transfer_weight,
                   owner_program, [explorer_token("sol", mint)])]


# ── Liquidity ────────────────────────────────────────────────────────

def lp_burn_from_holders(lp_mint: str, supply: TokenSupply, holders: list) -> LpBurn:
    burned = sum(h.amount for h in holders if h.owner == INCINERATOR or h.address == INCINERATOR)
    return LpBurn(lp_mint=lp_mint, burned_raw=burned, supply_raw=supply.amount)


def lp_unknown(mint: str, reason: str, pool: Optional[PoolInfo] = None) -> Signal:
    proof = [explorer_address("sol", pool.pool_id)] if pool else [explorer_token("sol", mint)]
    return Signal(SignalId.LP_STATUS_UNKNOWN, "LP status could not be verified", 0, reason, proof)


def liquidity_signal(mint: str, pool: Optional[PoolInfo], lp_mint: Optional[str],
                     burn: Optional[LpBurn], th: Thresholds = DEFAULTS) -> Signal:
    """Always exactly one LP_* signal."""
    if pool is None:
        return lp_unknown(mint, "no_pool")
    if not lp_mint:
        return lp_unknown(mint, f"no_lp_mint:{pool.dex_family or 'unknown'}", pool)
    if not is_solana_address(lp_mint):
        return lp_unknown(mint, "malformed_lp_mint", pool)
    if burn is None or burn.supply_raw <= 0:
        return lp_unknown(mint, "lp_supply_zero", pool)
    if burn.burned_raw > burn.supply_raw:
        return lp_unknown(mint, "malformed_lp_balance", pool)

    pct = burn.burned_pct * 100
    proof = [
        explorer_address("sol", pool.pool_id),
        explorer_token("sol", lp_mint),
        explorer_address("sol", INCINERATOR),
    ]
    if pct >= th.lp_burned_pct:
        return Signal(SignalId.LP_BURNED, "LP burned (liquidity locked by burn)", 0, f"burned={pct:.2f}%", proof)
    return Signal(SignalId.LP_NOT_BURNED, "LP not burned (liquidity can likely be removed)",
                  th.lp_not_burned_weight, f"burned={pct:.2f}%", proof)


__all__ = [
    "authority_signals", "distribution_signals", "top10_percent", "dev_hold_percent",
    "top_holders_breakdown", "pick_dev_candidate", "dev_signals", "token_age_signals",
    "contract_signals", "lp_burn_from_holders", "lp_unknown", "liquidity_signal",
    "share_of_supply",
]
