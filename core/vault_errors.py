"""
Error types for the Convex Vault model.

Every error derives from ValueError, which is what the rest of the contract
models raise, so callers that catch ValueError keep working.
"""


class VaultError(ValueError):
    """Base class for all vault model errors."""


class ConfigurationMismatch(VaultError):
    """A pool registration references an incompatible external pool."""


class NotFound(VaultError, IndexError):
    """A pool id is out of range."""


class InvalidAmount(VaultError):
    """An amount that must be positive was zero or negative."""


class InsufficientAllowance(VaultError):
    """A transfer_from exceeded the allowance granted by the token owner."""


class TransferFailed(VaultError):
    """A token movement was rejected by the token or the external protocol."""


class InsufficientStake(VaultError):
    """A withdrawal exceeds the caller's staked amount."""


class HarvestFailed(VaultError):
    """The external reward claim failed. No accounting state was changed."""


class InsufficientVaultBalance(VaultError):
    """
    Vault custody of a reward token is below what is owed.

    This can only happen if the accounting is broken and must be treated as an
    internal-consistency fault.
    """


class InvariantViolation(VaultError):
    """An accounting invariant does not hold."""
