"""
Wallet bootstrap: decide between opening, creating and creating a temporary
simulation wallet.

    --create       create the wallet interactively, then exit
    --createtemp   create a simulation wallet with fixed passphrases (or load
                   the existing one) and keep running

With neither flag the resolved configuration is handed back unchanged and the
caller opens the existing wallet.
"""

from __future__ import annotations

import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import TextIO

import typer
from loguru import logger

from lbcwallet import prompt
from lbcwallet.errors import ConfigError, ConflictError, WalletCreationError, WalletExistsError
from lbcwallet.netparams import SIMULATION_NETWORKS, NetParams
from lbcwallet.paths import ensure_dir
from lbcwallet.results import Continue, LoadResult, Terminate
from lbcwallet.settings import WalletSettings
from lbcwallet.wallet import (
    INSECURE_PUBLIC_PASSPHRASE,
    RECOMMENDED_SEED_LEN,
    SIMULATION_PRIVATE_PASSPHRASE,
    WalletCreator,
    WalletLoader,
    generate_seed,
    wallet_db_path,
    wallet_exists,
)

log = logger.bind(subsystem="loader")


def network_dir(app_data_dir: str | Path, net: NetParams) -> Path:
    """Return the directory holding the wallet database of ``net``."""
    return Path(app_data_dir) / net.dir_name


def validate_create_flags(config: WalletSettings, net: NetParams) -> None:
    """
    Check the wallet creation flags before anything touches the filesystem.

    Raises:
        ConflictError: If both --create and --createtemp are set
        ConfigError: If --createtemp is used without an explicit data
            directory or on a network that is not simnet, regtest or testnet
    """
    if config.create and config.create_temp:
        raise ConflictError(
            "the flags --create and --createtemp can not be specified together. "
            "Use --help for more information"
        )

    if not config.create_temp:
        return

    err_msg = "Tried to create a temporary simulation wallet"
    if not (config.is_explicit("app_data_dir") or config.is_explicit("data_dir")):
        raise ConfigError(f"{err_msg}, but failed to specify data directory!")
    if net.network not in SIMULATION_NETWORKS:
        raise ConfigError(f"{err_msg} for network other than simnet, regtest, or testnet3")


def public_passphrase(config: WalletSettings) -> bytes:
    """Return the public passphrase, falling back to the insecure default."""
    value = config.wallet_pass.get_secret_value()
    return value.encode("utf-8") if value else INSECURE_PUBLIC_PASSPHRASE


def create_wallet(
    config: WalletSettings,
    net: NetParams,
    db_dir: Path,
    *,
    creator: WalletCreator,
    reader: TextIO | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path:
    """
    Run the creation wizard and create a wallet in ``db_dir``.

    The private passphrase is entered twice (or taken from
    ``LBCWALLET_PASSPHRASE``), then the seed is generated or entered.
    """
    reader = reader or sys.stdin

    private_passphrase = prompt.passphrase(True, environ=environ)
    seed, birthday = prompt.seed(reader)

    typer.echo("Creating the wallet...")
    db_path = creator.create_wallet(
        db_dir,
        public_passphrase=public_passphrase(config),
        private_passphrase=private_passphrase,
        seed=seed,
        birthday=birthday,
        net=net,
    )
    typer.echo("The wallet has been created successfully.")
    return db_path


def create_simulation_wallet(
    config: WalletSettings,
    net: NetParams,
    db_dir: Path,
    *,
    creator: WalletCreator,
) -> Path:
    """Create a wallet with fixed passphrases and a random seed, without prompting."""
    typer.echo("Creating the wallet...")
    db_path = creator.create_wallet(
        db_dir,
        public_passphrase=public_passphrase(config),
        private_passphrase=SIMULATION_PRIVATE_PASSPHRASE,
        seed=generate_seed(RECOMMENDED_SEED_LEN),
        birthday=datetime.now(timezone.utc),
        net=net,
    )
    typer.echo("The wallet has been created successfully.")
    return db_path


def _ensure_network_dir(db_dir: Path) -> None:
    try:
        ensure_dir(db_dir)
    except OSError as e:
        raise WalletCreationError(f"unable to create wallet directory {db_dir}: {e}") from e


def bootstrap_wallet(
    result: Continue,
    *,
    creator: WalletCreator | None = None,
    reader: TextIO | None = None,
    environ: Mapping[str, str] | None = None,
) -> LoadResult:
    """
    Apply the --create / --createtemp decision to a resolved configuration.

    Returns:
        ``Terminate(0)`` after a successful --create, otherwise ``result``

    Raises:
        ConflictError: If both creation flags are set (nothing is touched)
        ConfigError: If the --createtemp requirements are not met
        WalletExistsError: If --create is used and the wallet already exists
        WalletCreationError: If the directory or the wallet cannot be created
    """
    config, net = result.config, result.net
    validate_create_flags(config, net)

    if not (config.create or config.create_temp):
        return result

    db_dir = network_dir(config.app_data_dir, net)
    db_path = wallet_db_path(db_dir)
    try:
        db_exists = wallet_exists(db_path)
    except OSError as e:
        raise WalletCreationError(f"unable to check for wallet database {db_path}: {e}") from e

    creator = creator or WalletLoader()

    if config.create_temp:
        if db_exists:
            typer.echo("The wallet already exists. Loading this wallet instead.")

        _ensure_network_dir(db_dir)
        if not db_exists:
            create_simulation_wallet(config, net, db_dir, creator=creator)
        return result

    if db_exists:
        raise WalletExistsError(f"the wallet database file `{db_path}` already exists")

    _ensure_network_dir(db_dir)
    create_wallet(config, net, db_dir, creator=creator, reader=reader, environ=environ)
    log.info(f"Created wallet for {net.name} in {db_dir}")
    return Terminate(0)


__all__ = [
    "network_dir",
    "validate_create_flags",
    "public_passphrase",
    "create_wallet",
    "create_simulation_wallet",
    "bootstrap_wallet",
]
