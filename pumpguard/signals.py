"""
SIGNALS
=======
A signal is one unit of evidence produced by a detector.

Every id the engine can emit is listed in SignalId, and every SignalId maps
to exactly one RiskCategory through SIGNAL_CATEGORY. The table is checked
at import time, so adding an id without a category fails loudly.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union


class RiskCategory(str, Enum):
    PERMISSIONS = "PERMISSIONS"
    DISTRIBUTION = "DISTRIBUTION"
    LIQUIDITY = "LIQUIDITY"
    DEV_CONTRACT = "DEV_CONTRACT"
    TX_PATTERNS = "TX_PATTERNS"
    CONTEXT = "CONTEXT"


# Maximum contribution of each category to the 0-100 score
CATEGORY_CAPS: dict[RiskCategory, float] = {
    RiskCategory.PERMISSIONS:  10,
    RiskCategory.DISTRIBUTION: 30,
    RiskCategory.LIQUIDITY:    10,
    RiskCategory.DEV_CONTRACT: 30,
    RiskCategory.TX_PATTERNS:  20,
    RiskCategory.CONTEXT:      0,
}


class SignalId(str, Enum):
    # Permissions
    MINT_AUTHORITY_PRESENT = "MINT_AUTHORITY_PRESENT"
    FREEZE_AUTHORITY_PRESENT = "FREEZE_AUTHORITY_PRESENT"
    # Distribution
    TOP10_GT_80 = "TOP10_GT_80"
    TOP10_GT_60 = "TOP10_GT_60"
    TOP10_GT_40 = "TOP10_GT_40"
    DEV_HOLDS_GT_50 = "DEV_HOLDS_GT_50"
    DEV_HOLDS_GT_30 = "DEV_HOLDS_GT_30"
    # Liquidity
    LP_BURNED = "LP_BURNED"
    LP_NOT_BURNED = "LP_NOT_BURNED"
    LP_STATUS_UNKNOWN = "LP_STATUS_UNKNOWN"
    # Dev / contract
    NONSTANDARD_TRANSFER = "NONSTANDARD_TRANSFER"
    # Tx patterns
    BUNDLED_LAUNCH_OR_MEV = "BUNDLED_LAUNCH_OR_MEV"
    CLUSTER_FUNDING = "CLUSTER_FUNDING"
    DEV_DUMP_EARLY = "DEV_DUMP_EARLY"
    # Context
    DEV_CANDIDATE = "DEV_CANDIDATE"
    DEV_EARLY_SIGNER = "DEV_EARLY_SIGNER"
    DEV_UNKNOWN = "DEV_UNKNOWN"
    TOKEN_AGE_LT_1H = "TOKEN_AGE_LT_1H"
    TOKEN_AGE_LT_6H = "TOKEN_AGE_LT_6H"
    TOKEN_AGE_LT_24H = "TOKEN_AGE_LT_24H"
    LIVE_ERROR = "LIVE_ERROR"
    DEMO_MODE = "DEMO_MODE"


SIGNAL_CATEGORY: dict[SignalId, RiskCategory] = {
    SignalId.MINT_AUTHORITY_PRESENT:   RiskCategory.PERMISSIONS,
    SignalId.FREEZE_AUTHORITY_PRESENT: RiskCategory.PERMISSIONS,

    SignalId.TOP10_GT_80:     RiskCategory.DISTRIBUTION,
    SignalId.TOP10_GT_60:     RiskCategory.DISTRIBUTION,
    SignalId.TOP10_GT_40:     RiskCategory.DISTRIBUTION,
    SignalId.DEV_HOLDS_GT_50: RiskCategory.DISTRIBUTION,
    SignalId.DEV_HOLDS_GT_30: RiskCategory.DISTRIBUTION,

    SignalId.LP_BURNED:         RiskCategory.LIQUIDITY,
    SignalId.LP_NOT_BURNED:     RiskCategory.LIQUIDITY,
    SignalId.LP_STATUS_UNKNOWN: RiskCategory.LIQUIDITY,

    SignalId.NONSTANDARD_TRANSFER: RiskCategory.DEV_CONTRACT,

    SignalId.BUNDLED_LAUNCH_OR_MEV: RiskCategory.TX_PATTERNS,
    SignalId.CLUSTER_FUNDING:       RiskCategory.TX_PATTERNS,
    SignalId.DEV_DUMP_EARLY:        RiskCategory.TX_PATTERNS,

    SignalId.DEV_CANDIDATE:    RiskCategory.CONTEXT,
    SignalId.DEV_EARLY_SIGNER: RiskCategory.CONTEXT,
    SignalId.DEV_UNKNOWN:      RiskCategory.CONTEXT,
    SignalId.TOKEN_AGE_LT_1H:  RiskCategory.CONTEXT,
    SignalId.TOKEN_AGE_LT_6H:  RiskCategory.CONTEXT,
    SignalId.TOKEN_AGE_LT_24H: RiskCategory.CONTEXT,
    SignalId.LIVE_ERROR:       RiskCategory.CONTEXT,
    SignalId.DEMO_MODE:        RiskCategory.CONTEXT,
}

_missing = set(SignalId) - set(SIGNAL_CATEGORY)
if _missing:
    raise RuntimeError(f"SignalId without category: {sorted(m.value for m in _missing)}")


def categorize(signal_id: Union[SignalId, str]) -> RiskCategory:
    """Category of a signal id. Ids outside SignalId are CONTEXT."""
    try:
        return SIGNAL_CATEGORY[SignalId(signal_id)]
    except ValueError:
        return RiskCategory.CONTEXT


def coerce_weight(raw) -> float:
    """Finite, non-negative float; anything else counts as 0."""
    if isinstance(raw, bool):
        return 0.0
    try:
        w = float(raw)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(w) or w < 0:
        return 0.0
    return w


def _id_value(signal_id) -> str:
    return signal_id.value if isinstance(signal_id, Enum) else str(signal_id)


@dataclass(frozen=True)
class Signal:
    id: str
    label: str
    weight: float = 0.0
    value: Optional[str] = None
    proof: tuple = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "id", _id_value(self.id))
        object.__setattr__(self, "weight", coerce_weight(self.weight))
        proof = self.proof if isinstance(self.proof, (list, tuple)) else ()
        object.__setattr__(self, "proof", tuple(dict.fromkeys(p for p in proof if p)))

    @property
    def category(self) -> RiskCategory:
        return categorize(self.id)

    def to_dict(self):
        return {
            "id": self.id,
            "label": self.label,
            "value": self.value,
            "weight": self.weight,
            "proof": list(self.proof),
            "category": self.category.value,
        }
