"""
GUARD CONFIGURATION
Runtime settings (endpoints, credentials, timeouts) and heuristic thresholds
"""

import os
from dataclasses import dataclass, asdict
from typing import Optional

DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_RPC_TEMPLATE = "https://mainnet.helius-rpc.com/?api-key={key}"
HELIUS_API = "https://api-mainnet.helius-rpc.com/v0"
DEXSCREENER_API = "https://api.dexscreener.com/latest/dex"
RAYDIUM_API = "https://api-v3.raydium.io"


@dataclass
class GuardConfig:
    rpc_url: str = DEFAULT_RPC_URL
    helius_api_key: Optional[str] = None

    # Per upstream call / whole deep phase (seconds)
    call_timeout: float = 12.0
    deep_timeout: float = 20.0

    # Result cache lifetime (seconds)
    score_ttl: float = 120.0

    @property
    def premium(self) -> bool:
        return bool(self.helius_api_key)

    def to_dict(self):
        d = asdict(self)
        # never echo the credential
        d["helius_api_key"] = "***" if self.helius_api_key else None
        return d

    @classmethod
    def from_env(cls):
        """Build config from environment variables, defaults where unset"""
        config = cls()

        key = os.getenv("HELIUS_API_KEY", "").strip()
        if key:
            config.helius_api_key = key

        rpc = os.getenv("SOLANA_RPC_URL", "").strip()
        if rpc:
            config.rpc_url = rpc
        elif key:
            config.rpc_url = HELIUS_RPC_TEMPLATE.format(key=key)

        if os.getenv("PG_CALL_TIMEOUT"):
            config.call_timeout = float(os.getenv("PG_CALL_TIMEOUT"))
        if os.getenv("PG_DEEP_TIMEOUT"):
            config.deep_timeout = float(os.getenv("PG_DEEP_TIMEOUT"))
        if os.getenv("PG_SCORE_TTL"):
            config.score_ttl = float(os.getenv("PG_SCORE_TTL"))

        return config


@dataclass(frozen=True)
class Thresholds:
    """
    Every heuristic constant used by the detectors.

    Percentages are on the 0-100 scale, windows in seconds.
    """
    # Authority
    mint_authority_weight: float = 10
    freeze_authority_weight: float = 6

    # Distribution
    largest_accounts: int = 20
    top10_high_pct: float = 80
    top10_high_weight: float = 18
    top10_mid_pct: float = 60
    top10_mid_weight: float = 10
    top10_low_pct: float = 40
    top10_low_weight: float = 5
    dev_high_pct: float = 50
    dev_high_weight: float = 15
    dev_mid_pct: float = 30
    dev_mid_weight: float = 8

    # Liquidity
    lp_largest_accounts: int = 25
    lp_burned_pct: float = 95
    lp_not_burned_weight: float = 10

    # Contract
    nonstandard_transfer_weight: float = 5

    # Transaction patterns
    tx_fetch_limit: int = 120
    burst_short_window: int = 60
    burst_short_min: int = 6
    burst_long_window: int = 180
    burst_long_min: int = 12
    burst_weight: float = 5
    funding_window: int = 15 * 60
    funding_min_buyers: int = 5
    funding_weight: float = 5
    dump_window: int = 60 * 60
    dump_min_pct: float = 1
    dump_min_units: float = 100_000
    dump_weight: float = 10

    # Token age (informational)
    age_1h_weight: float = 8
    age_6h_weight: float = 4
    age_24h_weight: float = 2

    # Dev candidate lookup
    signature_page_budget: int = 3

    # Holder count job
    holders_page_limit: int = 1000
    holders_job_ttl: int = 10 * 60
    holders_max_pages: int = 500
