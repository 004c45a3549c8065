"""
Configuration loading for lbcwallet.

``resolve_config`` merges defaults, the config file and command-line options,
selects the network and derives every dependent default:

1. Pre-pass over the command line: honour --version and find the config file
2. Read the config file (a missing file is reported by ``report_missing_config``)
3. Overlay the command line so it wins ties with the file
4. Fold the deprecated --datadir into --appdata
5. Select the network and check the wallet creation flags
6. Derive paths, log levels, the RPC connect address, the CA file and the
   legacy RPC listeners

The result is either ``Continue`` with the resolved configuration or
``Terminate`` with an exit code; this module never exits the process.
"""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from typing import Any, TextIO

from loguru import logger
from pydantic import ValidationError

from lbcwallet import addresses
from lbcwallet.addresses import (
    AddressError,
    is_loopback_host,
    join_host_port,
    normalize_address,
    normalize_addresses,
    split_host_port,
)
from lbcwallet.bootstrap import bootstrap_wallet, validate_create_flags
from lbcwallet.errors import ConfigError
from lbcwallet.log import SubsystemLevels, parse_and_set_debug_levels
from lbcwallet.netparams import NetParams, select_network
from lbcwallet.paths import clean_and_expand_path, file_exists
from lbcwallet.results import Continue, LoadResult, Terminate
from lbcwallet.settings import (
    APP_NAME,
    DEFAULT_CA_FILENAME,
    DEFAULT_CONFIG_FILENAME,
    DEFAULT_RPC_CERT_FILENAME,
    DEFAULT_RPC_KEY_FILENAME,
    ConfigFileSettingsSource,
    ConfigSource,
    WalletSettings,
    default_lbcd_ca_file,
)
from lbcwallet.version import get_version
from lbcwallet.wallet import WalletCreator

log = logger.bind(subsystem="config")


def _build_settings(
    file_values: Mapping[str, Any] | None,
    cli_values: Mapping[str, Any] | None,
) -> WalletSettings:
    try:
        return WalletSettings.from_sources(
            dict(file_values) if file_values else None,
            dict(cli_values) if cli_values else None,
        )
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"invalid configuration: {details}") from e


def effective_config_path(pre: WalletSettings) -> str:
    """
    Return the config file to read for the command-line-only settings ``pre``.

    An explicit --configfile always wins. Otherwise an explicit --appdata (or,
    failing that, an explicit deprecated --datadir) holds the config file.
    """
    if pre.is_explicit("config_file"):
        return clean_and_expand_path(pre.config_file)

    if pre.is_explicit("app_data_dir"):
        app_dir = clean_and_expand_path(pre.app_data_dir)
    elif pre.is_explicit("data_dir"):
        app_dir = clean_and_expand_path(pre.data_dir)
    else:
        return pre.config_file

    return os.path.join(app_dir, DEFAULT_CONFIG_FILENAME)


def merge_deprecated_data_dir(
    app_data_dir: str,
    app_data_source: ConfigSource,
    data_dir: str,
    data_dir_source: ConfigSource,
) -> tuple[str, ConfigSource]:
    """
    Merge the deprecated --datadir into --appdata.

    --datadir only supplies the value (and its provenance) when --appdata was
    not given; when both are given --appdata wins.
    """
    if data_dir_source is ConfigSource.DEFAULT or app_data_source is not ConfigSource.DEFAULT:
        return app_data_dir, app_data_source
    return data_dir, data_dir_source


def _apply_deprecated_options(cfg: WalletSettings) -> None:
    if not cfg.is_explicit("data_dir"):
        return

    log.warning("datadir option has been replaced by appdata -- please update your config")
    value, source = merge_deprecated_data_dir(
        cfg.app_data_dir,
        cfg.source_of("app_data_dir"),
        cfg.data_dir,
        cfg.source_of("data_dir"),
    )
    cfg.app_data_dir = value
    cfg.mark_source("app_data_dir", source)


def _exists(path: str) -> bool:
    try:
        return file_exists(path)
    except OSError as e:
        raise ConfigError(f"unable to access {path}: {e}") from e


def _resolve_ca_file(cfg: WalletSettings, rpc_host: str, lbcd_ca_file: str) -> None:
    if cfg.disable_client_tls or cfg.is_explicit("ca_file"):
        return

    cfg.ca_file = os.path.join(cfg.app_data_dir, DEFAULT_CA_FILENAME)
    if _exists(cfg.ca_file):
        return

    # Trust the certificate of a local lbcd when no copy was provided
    if is_loopback_host(rpc_host) and _exists(lbcd_ca_file):
        log.debug(f"Using local lbcd certificate {lbcd_ca_file}")
        cfg.ca_file = lbcd_ca_file


def _resolve_listeners(
    cfg: WalletSettings,
    net: NetParams,
    lookup_host: Callable[[str], list[str]],
) -> None:
    if not cfg.legacy_rpc_listeners:
        try:
            addrs = lookup_host("localhost")
        except OSError as e:
            raise ConfigError(f"unable to resolve localhost for RPC listeners: {e}") from e
        cfg.legacy_rpc_listeners = [join_host_port(addr, net.rpc_server_port) for addr in addrs]

    try:
        cfg.legacy_rpc_listeners = normalize_addresses(
            cfg.legacy_rpc_listeners, net.rpc_server_port
        )
    except AddressError as e:
        raise ConfigError(f"Invalid network address in legacy RPC listeners: {e}") from e

    if cfg.disable_server_tls:
        for addr in cfg.legacy_rpc_listeners:
            try:
                split_host_port(addr)
            except AddressError as e:
                raise ConfigError(f"RPC listen interface '{addr}' is invalid: {e}") from e


def resolve_config(
    cli_values: Mapping[str, Any] | None = None,
    *,
    levels: SubsystemLevels | None = None,
    lookup_host: Callable[[str], list[str]] | None = None,
    lbcd_ca_file: str | None = None,
) -> LoadResult:
    """
    Resolve the wallet configuration.

    Args:
        cli_values: Options given on the command line, keyed by field name
            (options not given must be absent)
        levels: Subsystem level table to apply --debuglevel to (a fresh
            table when None)
        lookup_host: Resolver used for the default RPC listeners
            (``lbcwallet.addresses.lookup_host`` when None)
        lbcd_ca_file: Certificate of a local lbcd node (its default location
            when None)

    Returns:
        ``Continue`` with the resolved configuration, network and levels (and
        the config file path when it was not found), or
        ``Terminate(0, ...)`` for --version and --debuglevel=show

    Raises:
        ConfigError: For any invalid option, config file or derived value
    """
    cli_values = dict(cli_values or {})

    pre = _build_settings(None, cli_values)
    if pre.show_version:
        return Terminate(0, f"{APP_NAME} version {get_version()}")

    config_path = effective_config_path(pre)
    source = ConfigFileSettingsSource(WalletSettings, config_path)
    cfg = _build_settings(source(), cli_values)

    _apply_deprecated_options(cfg)

    net = select_network(
        testnet=cfg.testnet,
        regtest=cfg.regtest,
        simnet=cfg.simnet,
        signet=cfg.signet,
        signet_challenge=cfg.signet_challenge,
        signet_seed_nodes=cfg.signet_seed_nodes,
    )
    validate_create_flags(cfg, net)

    if cfg.is_explicit("app_data_dir"):
        cfg.app_data_dir = clean_and_expand_path(cfg.app_data_dir)
        if not cfg.is_explicit("rpc_key"):
            cfg.rpc_key = os.path.join(cfg.app_data_dir, DEFAULT_RPC_KEY_FILENAME)
        if not cfg.is_explicit("rpc_cert"):
            cfg.rpc_cert = os.path.join(cfg.app_data_dir, DEFAULT_RPC_CERT_FILENAME)

    # Logs are namespaced per network
    cfg.log_dir = os.path.join(clean_and_expand_path(cfg.log_dir), net.name)

    levels = levels if levels is not None else SubsystemLevels()
    terminate = parse_and_set_debug_levels(cfg.debug_level, levels)
    if terminate is not None:
        return terminate

    if not cfg.rpc_connect:
        cfg.rpc_connect = join_host_port("localhost", net.rpc_client_port)
    try:
        cfg.rpc_connect = normalize_address(cfg.rpc_connect, net.rpc_client_port)
        rpc_host, _ = split_host_port(cfg.rpc_connect)
    except AddressError as e:
        raise ConfigError(f"Invalid rpcconnect network address: {e}") from e

    _resolve_ca_file(
        cfg, rpc_host, lbcd_ca_file if lbcd_ca_file is not None else default_lbcd_ca_file()
    )
    _resolve_listeners(cfg, net, lookup_host or addresses.lookup_host)

    cfg.ca_file = clean_and_expand_path(cfg.ca_file)
    cfg.rpc_cert = clean_and_expand_path(cfg.rpc_cert)
    cfg.rpc_key = clean_and_expand_path(cfg.rpc_key)

    return Continue(
        config=cfg,
        net=net,
        levels=levels,
        missing_config_file=config_path if source.missing else "",
    )


def report_missing_config(result: Continue) -> None:
    """Warn that the config file was not found, once the log sinks are in place."""
    if result.missing_config_file:
        log.warning(f"Config file {result.missing_config_file} does not exist, using defaults")


def load_config(
    cli_values: Mapping[str, Any] | None = None,
    *,
    levels: SubsystemLevels | None = None,
    lookup_host: Callable[[str], list[str]] | None = None,
    creator: WalletCreator | None = None,
    reader: TextIO | None = None,
    environ: Mapping[str, str] | None = None,
) -> LoadResult:
    """Resolve the configuration, then apply the wallet creation flags."""
    result = resolve_config(cli_values, levels=levels, lookup_host=lookup_host)
    if isinstance(result, Terminate):
        return result
    report_missing_config(result)
    return bootstrap_wallet(result, creator=creator, reader=reader, environ=environ)


__all__ = [
    "effective_config_path",
    "merge_deprecated_data_dir",
    "resolve_config",
    "report_missing_config",
    "load_config",
]
