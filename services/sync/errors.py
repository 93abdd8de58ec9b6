"""
Failure kinds seen during a wallet sync.

Only SetupError ends a run. ProviderError ends one wallet, PersistenceError
one item, and ResolutionMiss is informational.
"""


class SyncError(Exception):
    """Base class for sync failures."""


class ResolutionMiss(SyncError):
    """External token has no matching asset in the catalog."""

    def __init__(self, symbol: str, address: str | None):
        self.symbol = symbol
        self.address = address
        super().__init__(f"Unknown token: {symbol} ({address})")


class PersistenceError(SyncError):
    """A single position/price write failed."""


class ProviderError(SyncError):
    """The balance provider could not return a snapshot for a wallet."""


class SetupError(SyncError):
    """Custodian or asset catalog could not be loaded."""
