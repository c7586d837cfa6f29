"""
Data classes shared by the upstream clients, detectors and the engine.
"""

from dataclasses import dataclass, field
from typing import Optional

from .signals import Signal


# ── Upstream facts ───────────────────────────────────────────────────

@dataclass
class MintAuthorities:
    mint_authority: Optional[str] = None
    freeze_authority: Optional[str] = None


@dataclass
class TokenSupply:
    amount: int = 0                   # raw units
    decimals: int = 0
    ui_amount: Optional[float] = None


@dataclass
class LargestHolder:
    address: str                      # token account
    ui_amount: float = 0.0
    amount: int = 0                   # raw units
    owner: Optional[str] = None       # wallet owning the token account


@dataclass
class TokenAccount:
    owner: str
    amount: float = 0.0


@dataclass
class TokenAccountsPage:
    accounts: list = field(default_factory=list)   # [TokenAccount]
    cursor: Optional[str] = None


@dataclass
class SignatureInfo:
    signature: str
    block_time: Optional[int] = None
    slot: Optional[int] = None


@dataclass
class NativeTransfer:
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    amount: float = 0.0               # lamports


@dataclass
class TokenTransfer:
    mint: str = ""
    from_account: Optional[str] = None
    to_account: Optional[str] = None
    amount: float = 0.0               # ui amount


@dataclass
class EnhancedTx:
    signature: str = ""
    timestamp: Optional[int] = None   # unix seconds
    fee_payer: Optional[str] = None
    native_transfers: list = field(default_factory=list)   # [NativeTransfer]
    token_transfers: list = field(default_factory=list)    # [TokenTransfer]


@dataclass
class PoolInfo:
    pool_id: str
    dex_family: str = ""              # "raydium", "pumpswap", "orca", ...
    quote_mint: Optional[str] = None
    url: Optional[str] = None


@dataclass
class LpBurn:
    lp_mint: str
    burned_raw: int
    supply_raw: int

    @property
    def burned_pct(self) -> float:
        if self.supply_raw <= 0:
            return 0.0
        return self.burned_raw / self.supply_raw


@dataclass
class DevCandidate:
    address: Optional[str] = None
    reason: str = "unknown"           # mintAuthority | freezeAuthority | earliestSigner | unknown
    proof: list = field(default_factory=list)


# ── Reports ──────────────────────────────────────────────────────────

@dataclass
class FastReport:
    """Result of the synchronous detector path."""
    mint: str
    signals: list = field(default_factory=list)
    dev: DevCandidate = field(default_factory=DevCandidate)
    supply: Optional[TokenSupply] = None
    top10_percent: Optional[float] = None
    dev_hold_percent: Optional[float] = None
    age_seconds: Optional[int] = None
    launch_ts: Optional[int] = None
    top_holders: list = field(default_factory=list)
    failures: list = field(default_factory=list)
    live_checks: int = 0              # checks that returned usable data

    def to_dict(self):
        return {
            "mint": self.mint,
            "signals": [s.to_dict() for s in self.signals],
            "dev_candidate": self.dev.address,
            "dev_reason": self.dev.reason,
            "top10_percent": self.top10_percent,
            "dev_hold_percent": self.dev_hold_percent,
            "age_seconds": self.age_seconds,
            "top_holders": self.top_holders,
            "failures": self.failures,
        }


@dataclass
class DeepReport:
    """Result of the slow detector path (liquidity + transaction patterns)."""
    mint: str
    signals: list = field(default_factory=list)
    tx_checked: int = 0
    launch_ts: Optional[int] = None
    pool: Optional[PoolInfo] = None
    failures: list = field(default_factory=list)
    live_checks: int = 0
    elapsed_ms: int = 0

    def to_dict(self):
        return {
            "mint": self.mint,
            "signals": [s.to_dict() for s in self.signals],
            "tx_checked": self.tx_checked,
            "launch_ts": self.launch_ts,
            "pool": {"id": self.pool.pool_id, "dex": self.pool.dex_family} if self.pool else None,
            "failures": self.failures,
            "ms": self.elapsed_ms,
        }


@dataclass(frozen=True)
class RiskResult:
    chain: str
    address: str
    score: int
    level: str                        # LOW | MEDIUM | HIGH
    confidence: str                   # LOW | MED | HIGH
    mode: str                         # LIVE | DEMO
    verdict: str
    signals: tuple = ()
    categories: dict = field(default_factory=dict)
    meta: dict = field(default_factory=dict)

    def to_dict(self):
        return {
            "chain": self.chain,
            "address": self.address,
            "risk": {
                "score": self.score,
                "level": self.level,
                "confidence": self.confidence,
                "mode": self.mode,
                "verdict": self.verdict,
            },
            "categories": {k.value if hasattr(k, "value") else k: v for k, v in self.categories.items()},
            "signals": [s.to_dict() for s in self.signals],
            "meta": self.meta,
        }


__all__ = [
    "MintAuthorities", "TokenSupply", "LargestHolder", "TokenAccount", "TokenAccountsPage",
    "SignatureInfo", "NativeTransfer", "TokenTransfer", "EnhancedTx", "PoolInfo", "LpBurn",
    "DevCandidate", "FastReport", "DeepReport", "RiskResult", "Signal",
]
