"""
Exception types raised while resolving configuration and bootstrapping a wallet.
"""

from __future__ import annotations


class LbcwalletError(Exception):
    pass


class ConfigError(LbcwalletError):
    """Raised when an option, the config file or a derived value is invalid."""


class ConflictError(ConfigError):
    """Raised when mutually exclusive options are requested together."""


class WalletExistsError(LbcwalletError):
    pass


class WalletCreationError(LbcwalletError):
    pass


__all__ = [
    "LbcwalletError",
    "ConfigError",
    "ConflictError",
    "WalletExistsError",
    "WalletCreationError",
]
