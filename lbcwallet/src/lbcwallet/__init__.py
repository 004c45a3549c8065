"""
lbcwallet - configuration resolution and first-run bootstrap for the LBRY
credits wallet daemon.

Merges defaults, the config file and command-line options, selects the
network, derives dependent defaults and creates new wallets.
"""

from lbcwallet.version import __version__

from lbcwallet.config import load_config, resolve_config
from lbcwallet.results import Continue, LoadResult, Terminate
from lbcwallet.settings import WalletSettings

__all__ = [
    "__version__",
    "Continue",
    "LoadResult",
    "Terminate",
    "WalletSettings",
    "load_config",
    "resolve_config",
]
