"""
Command-line entry point for lbcwallet.

Resolves the configuration, sets up logging, applies --create/--createtemp
and opens the wallet. This is the only place the process exit code is decided.
"""

from __future__ import annotations

from typing import Annotated, Any

import typer
from loguru import logger

from lbcwallet.bootstrap import bootstrap_wallet, network_dir, public_passphrase
from lbcwallet.config import report_missing_config, resolve_config
from lbcwallet.errors import ConfigError, LbcwalletError
from lbcwallet.log import SubsystemLevels, setup_logging
from lbcwallet.netparams import NetParams
from lbcwallet.results import Terminate
from lbcwallet.settings import APP_NAME, WalletSettings
from lbcwallet.wallet import WalletLoader, wallet_db_path, wallet_exists

log = logger.bind(subsystem="main")

USAGE_MESSAGE = f"Use {APP_NAME} -h to show usage"

app = typer.Typer(
    name=APP_NAME,
    help="lbcwallet - a secure LBRY credits wallet daemon",
    add_completion=False,
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _given_options(values: dict[str, Any]) -> dict[str, Any]:
    """Keep only the options present on the command line."""
    return {
        name: value
        for name, value in values.items()
        if value is not None and value is not False and value != []
    }


def _log_summary(config: WalletSettings, net: NetParams) -> None:
    log.info(f"Active network: {net.name}")
    log.info(f"Application data directory: {config.app_data_dir}")
    log.info(
        f"lbcd RPC server: {config.rpc_connect} "
        f"(TLS {'disabled' if config.disable_client_tls else 'enabled'})"
    )
    log.info(f"Legacy RPC listeners: {', '.join(config.legacy_rpc_listeners)}")
    log.debug(f"CA file: {config.ca_file or 'none'}")
    log.debug(f"RPC certificate: {config.rpc_cert}, key: {config.rpc_key}")
    log.debug(f"Database timeout: {config.db_timeout}")


def _setup_file_logging(levels: SubsystemLevels, log_dir: str) -> None:
    try:
        setup_logging(levels, log_dir)
    except OSError as e:
        log.error(f"Unable to open log file in {log_dir}: {e}")
        raise typer.Exit(1)


def _open_wallet(config: WalletSettings, net: NetParams) -> None:
    db_dir = network_dir(config.app_data_dir, net)
    if not wallet_exists(wallet_db_path(db_dir)):
        log.error(
            "The wallet does not exist. Run with the --create option to initialize and create it."
        )
        raise typer.Exit(1)

    try:
        info = WalletLoader().open_wallet(db_dir, public_passphrase(config))
    except (OSError, ValueError) as e:
        log.error(f"Unable to open wallet: {e}")
        raise typer.Exit(1)

    if info.network != net.name:
        log.error(f"Wallet in {db_dir} belongs to network {info.network}, not {net.name}")
        raise typer.Exit(1)

    log.info(f"Opened wallet (birthday {info.birthday:%Y-%m-%d %H:%M:%S} UTC)")


@app.command()
def run(
    configfile: Annotated[
        str | None, typer.Option("--configfile", "-C", help="Path to configuration file")
    ] = None,
    version: Annotated[
        bool, typer.Option("--version", "-V", help="Display version information and exit")
    ] = False,
    create: Annotated[
        bool, typer.Option("--create", help="Create the wallet if it does not exist")
    ] = False,
    createtemp: Annotated[
        bool,
        typer.Option(
            "--createtemp",
            help=(
                "Create a temporary simulation wallet (pass=password) in the data "
                "directory indicated; must call with --appdata"
            ),
        ),
    ] = False,
    appdata: Annotated[
        str | None,
        typer.Option(
            "--appdata",
            "-A",
            help="Application data directory for wallet config, databases and logs",
        ),
    ] = None,
    testnet: Annotated[bool, typer.Option("--testnet", help="Use the test network")] = False,
    regtest: Annotated[
        bool, typer.Option("--regtest", help="Use the regression test network")
    ] = False,
    simnet: Annotated[
        bool, typer.Option("--simnet", help="Use the simulation test network")
    ] = False,
    signet: Annotated[bool, typer.Option("--signet", help="Use the signet test network")] = False,
    signetchallenge: Annotated[
        str | None,
        typer.Option(
            "--signetchallenge",
            help="Connect to a custom signet network defined by this hex challenge",
        ),
    ] = None,
    signetseednode: Annotated[
        list[str] | None,
        typer.Option(
            "--signetseednode",
            help="Seed node for the signet network instead of the default signet seeds",
        ),
    ] = None,
    debuglevel: Annotated[
        str | None,
        typer.Option(
            "--debuglevel",
            "-d",
            help=(
                "Logging level for all subsystems {trace, debug, info, warn, error, critical} "
                "-- You may also specify <subsystem>=<level>,<subsystem2>=<level>,... to set "
                "the log level for individual subsystems -- Use show to list available subsystems"
            ),
        ),
    ] = None,
    logdir: Annotated[
        str | None, typer.Option("--logdir", help="Directory to log output")
    ] = None,
    profile: Annotated[
        str | None,
        typer.Option(
            "--profile",
            help="Enable HTTP profiling on given port -- port must be between 1024 and 65535",
        ),
    ] = None,
    dbtimeout: Annotated[
        str | None,
        typer.Option(
            "--dbtimeout",
            help="The timeout value to use when opening the wallet database (e.g. 60s)",
        ),
    ] = None,
    walletpass: Annotated[
        str | None,
        typer.Option(
            "--walletpass",
            help="The public wallet password -- Only required if the wallet was created with one",
        ),
    ] = None,
    rpcconnect: Annotated[
        str | None,
        typer.Option(
            "--rpcconnect",
            "-c",
            help="Hostname/IP and port of lbcd RPC server to connect to",
        ),
    ] = None,
    cafile: Annotated[
        str | None,
        typer.Option(
            "--cafile",
            help="File containing root certificates to authenticate TLS connections with lbcd",
        ),
    ] = None,
    noclienttls: Annotated[
        bool, typer.Option("--noclienttls", help="Disable TLS for the RPC client")
    ] = False,
    skipverify: Annotated[
        bool, typer.Option("--skipverify", help="Skip verifying TLS for the RPC client")
    ] = False,
    proxy: Annotated[
        str | None,
        typer.Option("--proxy", help="Connect via SOCKS5 proxy (eg. 127.0.0.1:9050)"),
    ] = None,
    proxyuser: Annotated[
        str | None, typer.Option("--proxyuser", help="Username for proxy server")
    ] = None,
    proxypass: Annotated[
        str | None, typer.Option("--proxypass", help="Password for proxy server")
    ] = None,
    rpccert: Annotated[
        str | None, typer.Option("--rpccert", help="File containing the certificate file")
    ] = None,
    rpckey: Annotated[
        str | None, typer.Option("--rpckey", help="File containing the certificate key")
    ] = None,
    onetimetlskey: Annotated[
        bool,
        typer.Option(
            "--onetimetlskey",
            help="Generate a new TLS certpair at startup, but only write the certificate to disk",
        ),
    ] = False,
    noservertls: Annotated[
        bool, typer.Option("--noservertls", help="Disable TLS for the RPC server")
    ] = False,
    rpclisten: Annotated[
        list[str] | None,
        typer.Option("--rpclisten", help="Listen for legacy RPC connections on this interface/port"),
    ] = None,
    rpcmaxclients: Annotated[
        int | None,
        typer.Option(
            "--rpcmaxclients", help="Max number of legacy RPC clients for standard connections"
        ),
    ] = None,
    rpcmaxwebsockets: Annotated[
        int | None,
        typer.Option("--rpcmaxwebsockets", help="Max number of RPC websocket connections"),
    ] = None,
    rpcuser: Annotated[
        str | None,
        typer.Option("--rpcuser", "-u", help="Username for RPC and lbcd authentication"),
    ] = None,
    rpcpass: Annotated[
        str | None,
        typer.Option("--rpcpass", "-P", help="Password for RPC and lbcd authentication"),
    ] = None,
    datadir: Annotated[
        str | None,
        typer.Option("--datadir", "-b", help="DEPRECATED -- use appdata instead"),
    ] = None,
) -> None:
    """Run the lbcwallet daemon."""
    cli_values = _given_options(
        {
            "config_file": configfile,
            "show_version": version,
            "create": create,
            "create_temp": createtemp,
            "app_data_dir": appdata,
            "testnet": testnet,
            "regtest": regtest,
            "simnet": simnet,
            "signet": signet,
            "signet_challenge": signetchallenge,
            "signet_seed_nodes": signetseednode,
            "debug_level": debuglevel,
            "log_dir": logdir,
            "profile": profile,
            "db_timeout": dbtimeout,
            "wallet_pass": walletpass,
            "rpc_connect": rpcconnect,
            "ca_file": cafile,
            "disable_client_tls": noclienttls,
            "skip_verify": skipverify,
            "proxy": proxy,
            "proxy_user": proxyuser,
            "proxy_pass": proxypass,
            "rpc_cert": rpccert,
            "rpc_key": rpckey,
            "one_time_tls_key": onetimetlskey,
            "disable_server_tls": noservertls,
            "legacy_rpc_listeners": rpclisten,
            "legacy_rpc_max_clients": rpcmaxclients,
            "legacy_rpc_max_websockets": rpcmaxwebsockets,
            "rpc_user": rpcuser,
            "rpc_pass": rpcpass,
            "data_dir": datadir,
        }
    )

    # The stderr sink follows the level table, so --debuglevel applies as soon as it is parsed
    levels = SubsystemLevels()
    setup_logging(levels)

    try:
        result = resolve_config(cli_values, levels=levels)
        if not isinstance(result, Terminate):
            _setup_file_logging(result.levels, result.config.log_dir)
            report_missing_config(result)
            result = bootstrap_wallet(result)
    except ConfigError as e:
        log.error(str(e))
        typer.echo(USAGE_MESSAGE, err=True)
        raise typer.Exit(1)
    except LbcwalletError as e:
        log.error(f"Unable to create wallet: {e}")
        raise typer.Exit(1)
    except EOFError:
        log.error("Unable to create wallet: input closed before the wizard finished")
        raise typer.Exit(1)

    if isinstance(result, Terminate):
        if result.message:
            typer.echo(result.message)
        raise typer.Exit(result.exit_code)

    _log_summary(result.config, result.net)
    _open_wallet(result.config, result.net)


def main() -> None:
    """Entry point for the ``lbcwallet`` console script."""
    app()


if __name__ == "__main__":
    main()
