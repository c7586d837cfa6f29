"""Exceptions raised inside pumpguard."""


class GuardError(Exception):
    pass


class InvalidSubjectError(GuardError, ValueError):
    """Unsupported chain or malformed address. Raised before any lookup."""


class UpstreamError(GuardError):
    """An upstream answered badly: non-2xx, JSON-RPC error or unreadable body."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class UpstreamTimeout(UpstreamError):
    pass


class MissingCredentialError(UpstreamError):
    def __init__(self, source: str):
        super().__init__(source, "HELIUS_API_KEY not configured")
