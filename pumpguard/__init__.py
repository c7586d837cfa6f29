"""
pumpguard: signal-based risk scoring for Solana tokens.
"""

from .cache import TTLCache
from .config import GuardConfig, Thresholds
from .engine import RiskEngine
from .errors import GuardError, InvalidSubjectError, MissingCredentialError, UpstreamError, UpstreamTimeout
from .models import RiskResult
from .signals import RiskCategory, Signal, SignalId, categorize

__all__ = [
    "TTLCache", "GuardConfig", "Thresholds", "RiskEngine", "RiskResult",
    "GuardError", "InvalidSubjectError", "MissingCredentialError", "UpstreamError", "UpstreamTimeout",
    "RiskCategory", "Signal", "SignalId", "categorize",
]
