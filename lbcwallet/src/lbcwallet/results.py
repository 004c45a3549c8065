"""
Outcomes of configuration loading.

Resolution either continues with a configuration or asks the entry point to
terminate the process with an exit code (version display, subsystem listing,
one-shot wallet creation). Only the CLI acts on ``Terminate``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from lbcwallet.log import SubsystemLevels
    from lbcwallet.netparams import NetParams
    from lbcwallet.settings import WalletSettings


@dataclass
class Continue:
    config: WalletSettings
    net: NetParams
    levels: SubsystemLevels
    # Config file that was looked for but not found, reported once logging is set up
    missing_config_file: str = ""


@dataclass(frozen=True)
class Terminate:
    exit_code: int
    message: str = ""


LoadResult = Union[Continue, Terminate]


__all__ = ["Continue", "Terminate", "LoadResult"]
