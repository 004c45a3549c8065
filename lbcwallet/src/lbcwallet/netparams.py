"""
Network parameter sets and selection of the active network.

The active network is returned as a value and passed explicitly to every
step that needs its ports or name.
"""

from __future__ import annotations

import binascii
from dataclasses import dataclass, field, replace
from enum import Enum

from lbcwallet.errors import ConfigError, ConflictError

DEFAULT_SIGNET_CHALLENGE = bytes.fromhex(
    "512103ad5e0edad18cb1f0fc0d28a3d4f1f3e445640337489abb10404f2d1e086be43021"
    "0359ef5021964fe22d6f8e05b2463c9540ce96883fe3b278760f048f5189f2e6c452ae"
)


class NetworkType(str, Enum):
    MAINNET = "mainnet"
    TESTNET = "testnet"
    REGTEST = "regtest"
    SIMNET = "simnet"
    SIGNET = "signet"


@dataclass(frozen=True)
class DNSSeed:
    host: str
    has_filtering: bool = False


DEFAULT_SIGNET_SEEDS: tuple[DNSSeed, ...] = (
    DNSSeed("178.128.221.177", has_filtering=False),
    DNSSeed("2a01:7c8:d005:390::5", has_filtering=False),
    DNSSeed(
        "v7ajjeirttkbnt32wpy3c6w3emwnfr3fkla7hpxcfokr3ysd3kqtzmqd.onion:38333",
        has_filtering=False,
    ),
)


@dataclass(frozen=True)
class NetParams:
    """
    Parameters of one network as far as configuration is concerned.

    ``name`` namespaces the log directory; ``dir_name`` names the wallet
    directory under the application data directory.
    """

    network: NetworkType
    name: str
    dir_name: str
    rpc_client_port: str
    rpc_server_port: str
    signet_challenge: bytes | None = None
    seeds: tuple[DNSSeed, ...] = field(default_factory=tuple)


MAINNET_PARAMS = NetParams(
    network=NetworkType.MAINNET,
    name="mainnet",
    dir_name="mainnet",
    rpc_client_port="9245",
    rpc_server_port="9244",
)

# The testnet wallet directory is always "testnet", not "testnet3"
TESTNET_PARAMS = NetParams(
    network=NetworkType.TESTNET,
    name="testnet3",
    dir_name="testnet",
    rpc_client_port="19245",
    rpc_server_port="19244",
)

REGTEST_PARAMS = NetParams(
    network=NetworkType.REGTEST,
    name="regtest",
    dir_name="regtest",
    rpc_client_port="29245",
    rpc_server_port="29244",
)

SIMNET_PARAMS = NetParams(
    network=NetworkType.SIMNET,
    name="simnet",
    dir_name="simnet",
    rpc_client_port="39245",
    rpc_server_port="39244",
)

SIGNET_PARAMS = NetParams(
    network=NetworkType.SIGNET,
    name="signet",
    dir_name="signet",
    rpc_client_port="49245",
    rpc_server_port="49244",
    signet_challenge=DEFAULT_SIGNET_CHALLENGE,
    seeds=DEFAULT_SIGNET_SEEDS,
)

# Networks a temporary simulation wallet may be created on
SIMULATION_NETWORKS = frozenset({NetworkType.SIMNET, NetworkType.REGTEST, NetworkType.TESTNET})


def custom_signet_params(challenge: bytes, seeds: tuple[DNSSeed, ...]) -> NetParams:
    """Build signet parameters for a custom challenge script and seed list."""
    return replace(SIGNET_PARAMS, signet_challenge=challenge, seeds=seeds)


def select_network(
    *,
    testnet: bool = False,
    regtest: bool = False,
    simnet: bool = False,
    signet: bool = False,
    signet_challenge: str = "",
    signet_seed_nodes: list[str] | None = None,
) -> NetParams:
    """
    Choose the active network from the mutually exclusive network flags.

    With no flag set, mainnet is used. For signet the default challenge and
    seed nodes can be overridden; each seed node given is non-filtering.

    Raises:
        ConflictError: If more than one network flag is set
        ConfigError: If the signet challenge is not valid hex
    """
    requested = {
        "testnet": testnet,
        "regtest": regtest,
        "simnet": simnet,
        "signet": signet,
    }
    chosen = [name for name, enabled in requested.items() if enabled]
    if len(chosen) > 1:
        raise ConflictError(
            f"The networks {', '.join(chosen)} can't be used together -- choose one"
        )

    if testnet:
        return TESTNET_PARAMS
    if regtest:
        return REGTEST_PARAMS
    if simnet:
        return SIMNET_PARAMS
    if not signet:
        return MAINNET_PARAMS

    challenge = DEFAULT_SIGNET_CHALLENGE
    if signet_challenge:
        try:
            challenge = binascii.unhexlify(signet_challenge)
        except (binascii.Error, ValueError) as e:
            raise ConfigError(
                f"Invalid signet challenge {signet_challenge!r}, hex decode failed: {e}"
            ) from e

    seeds = DEFAULT_SIGNET_SEEDS
    if signet_seed_nodes:
        seeds = tuple(DNSSeed(host, has_filtering=False) for host in signet_seed_nodes)

    return custom_signet_params(challenge, seeds)


__all__ = [
    "NetworkType",
    "DNSSeed",
    "NetParams",
    "MAINNET_PARAMS",
    "TESTNET_PARAMS",
    "REGTEST_PARAMS",
    "SIMNET_PARAMS",
    "SIGNET_PARAMS",
    "SIMULATION_NETWORKS",
    "DEFAULT_SIGNET_CHALLENGE",
    "DEFAULT_SIGNET_SEEDS",
    "custom_signet_params",
    "select_network",
]
