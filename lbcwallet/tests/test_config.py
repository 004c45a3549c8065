"""
Tests for lbcwallet.config - option merging and dependent defaults.
"""

from __future__ import annotations

import socket
from pathlib import Path
from typing import Any

import pytest

from lbcwallet.config import (
    effective_config_path,
    load_config,
    merge_deprecated_data_dir,
    report_missing_config,
    resolve_config,
)
from lbcwallet.errors import ConfigError, ConflictError
from lbcwallet.log import SUBSYSTEMS, SubsystemLevels
from lbcwallet.netparams import MAINNET_PARAMS, SIMNET_PARAMS, TESTNET_PARAMS
from lbcwallet.results import Continue, Terminate
from lbcwallet.settings import ConfigSource, WalletSettings
from lbcwallet.version import get_version


@pytest.fixture
def lbcd_cert(tmp_path: Path) -> Path:
    """Location of a local lbcd certificate (not created by default)."""
    return tmp_path / "lbcd" / "rpc.cert"


@pytest.fixture
def resolve(lookup_localhost, lbcd_cert: Path):
    """resolve_config with a fake localhost resolver and lbcd certificate location."""

    def _resolve(cli_values: dict[str, Any] | None = None, **kwargs: Any) -> Continue:
        kwargs.setdefault("lookup_host", lookup_localhost)
        kwargs.setdefault("lbcd_ca_file", str(lbcd_cert))
        return resolve_config(cli_values, **kwargs)

    return _resolve


def write_config(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


class TestTerminate:
    """Tests for options that end the process before normal startup."""

    def test_version(self, resolve) -> None:
        result = resolve({"show_version": True})
        assert result == Terminate(0, f"lbcwallet version {get_version()}")

    def test_version_skips_config_file(self, resolve, app_dir: Path) -> None:
        """Test that --version wins even when the config file is invalid."""
        write_config(app_dir / "lbcwallet.conf", "not valid toml ==\n")
        result = resolve({"show_version": True, "app_data_dir": str(app_dir)})
        assert isinstance(result, Terminate)
        assert result.exit_code == 0

    def test_show_subsystems(self, resolve) -> None:
        levels = SubsystemLevels()
        result = resolve({"debug_level": "show"}, levels=levels)

        assert isinstance(result, Terminate)
        assert result.exit_code == 0
        assert result.message == (
            "Supported subsystems [chain config loader main rpcclient rpcserver txmgr wallet]"
        )
        assert levels.as_dict() == {name: "info" for name in SUBSYSTEMS}


class TestConfigFileLocation:
    """Tests for choosing the config file to read."""

    def test_default_location(self, home_dir: Path) -> None:
        pre = WalletSettings.from_sources()
        assert effective_config_path(pre) == str(home_dir / ".lbcwallet" / "lbcwallet.conf")

    def test_appdata(self, app_dir: Path) -> None:
        pre = WalletSettings.from_sources(cli_values={"app_data_dir": str(app_dir)})
        assert effective_config_path(pre) == str(app_dir / "lbcwallet.conf")

    def test_appdata_expanded(self, home_dir: Path) -> None:
        pre = WalletSettings.from_sources(cli_values={"app_data_dir": "~/wallets"})
        assert effective_config_path(pre) == str(home_dir / "wallets" / "lbcwallet.conf")

    def test_deprecated_datadir(self, app_dir: Path) -> None:
        pre = WalletSettings.from_sources(cli_values={"data_dir": str(app_dir)})
        assert effective_config_path(pre) == str(app_dir / "lbcwallet.conf")

    def test_appdata_wins_over_datadir(self, app_dir: Path, tmp_path: Path) -> None:
        pre = WalletSettings.from_sources(
            cli_values={"app_data_dir": str(app_dir), "data_dir": str(tmp_path / "old")}
        )
        assert effective_config_path(pre) == str(app_dir / "lbcwallet.conf")

    def test_explicit_config_file_always_wins(self, app_dir: Path, tmp_path: Path) -> None:
        pre = WalletSettings.from_sources(
            cli_values={
                "config_file": str(tmp_path / "custom.conf"),
                "app_data_dir": str(app_dir),
            }
        )
        assert effective_config_path(pre) == str(tmp_path / "custom.conf")

    def test_explicit_default_config_file_wins(self, app_dir: Path, home_dir: Path) -> None:
        """Test that naming the default config file explicitly still beats --appdata."""
        default_file = str(home_dir / ".lbcwallet" / "lbcwallet.conf")
        pre = WalletSettings.from_sources(
            cli_values={"config_file": default_file, "app_data_dir": str(app_dir)}
        )
        assert effective_config_path(pre) == default_file


class TestMergeDeprecatedDataDir:
    """Tests for folding --datadir into --appdata."""

    def test_neither_set(self) -> None:
        assert merge_deprecated_data_dir("a", ConfigSource.DEFAULT, "d", ConfigSource.DEFAULT) == (
            "a",
            ConfigSource.DEFAULT,
        )

    def test_only_datadir_set(self) -> None:
        assert merge_deprecated_data_dir("a", ConfigSource.DEFAULT, "d", ConfigSource.FILE) == (
            "d",
            ConfigSource.FILE,
        )

    def test_appdata_wins(self) -> None:
        assert merge_deprecated_data_dir("a", ConfigSource.FILE, "d", ConfigSource.CLI) == (
            "a",
            ConfigSource.FILE,
        )


class TestMerging:
    """Tests for layering defaults, the config file and the command line."""

    def test_file_values_used(self, resolve, app_dir: Path) -> None:
        write_config(
            app_dir / "lbcwallet.conf",
            'rpcuser = "fileuser"\nproxy = "127.0.0.1:9050"\nrpcmaxclients = 3\n',
        )

        result = resolve({"app_data_dir": str(app_dir)})

        assert isinstance(result, Continue)
        assert result.config.rpc_user == "fileuser"
        assert result.config.proxy == "127.0.0.1:9050"
        assert result.config.legacy_rpc_max_clients == 3

    def test_command_line_wins(self, resolve, app_dir: Path) -> None:
        write_config(
            app_dir / "lbcwallet.conf",
            'rpcuser = "fileuser"\ndebuglevel = "warn"\n',
        )
        levels = SubsystemLevels()

        result = resolve(
            {"app_data_dir": str(app_dir), "rpc_user": "cliuser", "debug_level": "error"},
            levels=levels,
        )

        assert isinstance(result, Continue)
        assert result.config.rpc_user == "cliuser"
        assert result.config.debug_level == "error"
        assert levels.as_dict() == {name: "error" for name in SUBSYSTEMS}

    def test_explicit_config_file(self, resolve, app_dir: Path, tmp_path: Path) -> None:
        write_config(app_dir / "lbcwallet.conf", 'rpcuser = "appdata"\n')
        custom = write_config(tmp_path / "custom.conf", 'rpcuser = "custom"\n')

        result = resolve({"config_file": str(custom), "app_data_dir": str(app_dir)})

        assert isinstance(result, Continue)
        assert result.config.rpc_user == "custom"

    def test_network_from_file(self, resolve, app_dir: Path) -> None:
        write_config(app_dir / "lbcwallet.conf", "testnet = true\n")

        result = resolve({"app_data_dir": str(app_dir)})

        assert isinstance(result, Continue)
        assert result.net == TESTNET_PARAMS
        assert result.config.rpc_connect == "localhost:19245"
        assert result.missing_config_file == ""

    def test_missing_file_warns(self, resolve, app_dir: Path, log_messages: list[str]) -> None:
        """Test that a missing config file is recorded and reported on request."""
        result = resolve({"app_data_dir": str(app_dir)})

        assert isinstance(result, Continue)
        assert result.missing_config_file == str(app_dir / "lbcwallet.conf")
        assert not any("does not exist" in message for message in log_messages)

        report_missing_config(result)

        assert any(
            str(app_dir / "lbcwallet.conf") in message and "does not exist" in message
            for message in log_messages
        )

    def test_missing_file_not_reported_on_error(
        self, resolve, app_dir: Path, log_messages: list[str]
    ) -> None:
        """Test that the missing config file warning only follows a successful resolution."""
        with pytest.raises(ConflictError):
            resolve({"app_data_dir": str(app_dir), "testnet": True, "simnet": True})
        assert not any("does not exist" in message for message in log_messages)

    def test_unknown_key_in_file(self, resolve, app_dir: Path) -> None:
        write_config(app_dir / "lbcwallet.conf", "walletname = 1\n")
        with pytest.raises(ConfigError, match="walletname"):
            resolve({"app_data_dir": str(app_dir)})

    def test_invalid_value_in_file(self, resolve, app_dir: Path) -> None:
        write_config(app_dir / "lbcwallet.conf", "rpcmaxclients = -1\n")
        with pytest.raises(ConfigError, match="invalid configuration"):
            resolve({"app_data_dir": str(app_dir)})

    def test_invalid_value_on_command_line(self, resolve) -> None:
        with pytest.raises(ConfigError):
            resolve({"profile": "80"})


class TestDeprecatedDataDir:
    def test_datadir_seeds_appdata(
        self, resolve, app_dir: Path, log_messages: list[str]
    ) -> None:
        write_config(app_dir / "lbcwallet.conf", 'rpcuser = "fromdatadir"\n')

        result = resolve({"data_dir": str(app_dir)})

        assert isinstance(result, Continue)
        assert result.config.app_data_dir == str(app_dir)
        assert result.config.is_explicit("app_data_dir")
        assert result.config.rpc_user == "fromdatadir"
        assert result.config.rpc_cert == str(app_dir / "rpc.cert")
        assert any("datadir option has been replaced" in message for message in log_messages)

    def test_appdata_wins_over_datadir(self, resolve, app_dir: Path, tmp_path: Path) -> None:
        result = resolve({"app_data_dir": str(app_dir), "data_dir": str(tmp_path / "old")})

        assert isinstance(result, Continue)
        assert result.config.app_data_dir == str(app_dir)


class TestDependentDefaults:
    """Tests for paths and values derived from the application directory and network."""

    def test_defaults(self, resolve, home_dir: Path, fake_lookup: list[str]) -> None:
        result = resolve()

        assert isinstance(result, Continue)
        config = result.config
        app_dir = home_dir / ".lbcwallet"
        assert result.net == MAINNET_PARAMS
        assert config.app_data_dir == str(app_dir)
        assert config.log_dir == str(app_dir / "logs" / "mainnet")
        assert config.rpc_connect == "localhost:9245"
        assert config.ca_file == str(app_dir / "lbcd.cert")
        assert config.legacy_rpc_listeners == ["127.0.0.1:9244", "[::1]:9244"]
        assert fake_lookup == ["localhost"]

    def test_appdata_rebases_rpc_cert_and_key(self, resolve, app_dir: Path) -> None:
        result = resolve({"app_data_dir": str(app_dir)})

        assert isinstance(result, Continue)
        assert result.config.rpc_cert == str(app_dir / "rpc.cert")
        assert result.config.rpc_key == str(app_dir / "rpc.key")
        assert result.config.ca_file == str(app_dir / "lbcd.cert")

    def test_explicit_rpc_cert_not_rebased(
        self, resolve, app_dir: Path, home_dir: Path
    ) -> None:
        result = resolve({"app_data_dir": str(app_dir), "rpc_cert": "~/certs/wallet.cert"})

        assert isinstance(result, Continue)
        assert result.config.rpc_cert == str(home_dir / "certs" / "wallet.cert")
        assert result.config.rpc_key == str(app_dir / "rpc.key")

    def test_appdata_from_file_rebases(self, resolve, app_dir: Path, tmp_path: Path) -> None:
        custom = write_config(tmp_path / "custom.conf", f'appdata = "{app_dir}"\n')

        result = resolve({"config_file": str(custom)})

        assert isinstance(result, Continue)
        assert result.config.app_data_dir == str(app_dir)
        assert result.config.rpc_key == str(app_dir / "rpc.key")

    def test_appdata_expanded(self, resolve, home_dir: Path) -> None:
        result = resolve({"app_data_dir": "~/wallets/lbc"})

        assert isinstance(result, Continue)
        assert result.config.app_data_dir == str(home_dir / "wallets" / "lbc")

    def test_log_dir_namespaced_by_network(self, resolve, home_dir: Path) -> None:
        result = resolve({"testnet": True, "log_dir": "~/lbclogs"})

        assert isinstance(result, Continue)
        assert result.config.log_dir == str(home_dir / "lbclogs" / "testnet3")

    def test_debug_pairs_applied(self, resolve) -> None:
        levels = SubsystemLevels()
        result = resolve({"debug_level": "wallet=trace,chain=error"}, levels=levels)

        assert isinstance(result, Continue)
        assert result.levels is levels
        assert levels.get_level("wallet") == "trace"
        assert levels.get_level("chain") == "error"
        assert levels.get_level("main") == "info"

    def test_invalid_debug_level(self, resolve) -> None:
        with pytest.raises(ConfigError, match="bogus"):
            resolve({"debug_level": "bogus=info"})


class TestNetworkSelection:
    def test_conflicting_networks(self, resolve) -> None:
        with pytest.raises(ConflictError, match="regtest, signet"):
            resolve({"regtest": True, "signet": True})

    def test_invalid_signet_challenge(self, resolve) -> None:
        with pytest.raises(ConfigError, match="hex decode failed"):
            resolve({"signet": True, "signet_challenge": "nothex"})

    def test_custom_signet(self, resolve) -> None:
        result = resolve(
            {"signet": True, "signet_challenge": "51", "signet_seed_nodes": ["seed.example"]}
        )

        assert isinstance(result, Continue)
        assert result.net.signet_challenge == b"\x51"
        assert [seed.host for seed in result.net.seeds] == ["seed.example"]
        assert result.config.rpc_connect == "localhost:49245"


class TestRPCConnect:
    """Tests for the lbcd RPC server address."""

    def test_port_appended(self, resolve) -> None:
        result = resolve({"testnet": True, "rpc_connect": "10.0.0.5"})
        assert isinstance(result, Continue)
        assert result.config.rpc_connect == "10.0.0.5:19245"

    def test_ipv6(self, resolve) -> None:
        result = resolve({"rpc_connect": "::1"})
        assert isinstance(result, Continue)
        assert result.config.rpc_connect == "[::1]:9245"

    def test_explicit_port_kept(self, resolve) -> None:
        result = resolve({"rpc_connect": "node.example:1234"})
        assert isinstance(result, Continue)
        assert result.config.rpc_connect == "node.example:1234"

    def test_invalid(self, resolve) -> None:
        with pytest.raises(ConfigError, match="Invalid rpcconnect network address"):
            resolve({"rpc_connect": "[::1"})


class TestCAFile:
    """Tests for choosing the certificate used to verify lbcd."""

    def test_local_lbcd_certificate(self, resolve, app_dir: Path, lbcd_cert: Path) -> None:
        """Test that a local lbcd's certificate is trusted when no copy exists."""
        write_config(lbcd_cert, "CERT")

        result = resolve({"app_data_dir": str(app_dir)})

        assert isinstance(result, Continue)
        assert result.config.ca_file == str(lbcd_cert)

    @pytest.mark.parametrize("host", ["127.0.0.1", "[::1]", "localhost"])
    def test_local_lbcd_certificate_loopback_hosts(
        self, resolve, app_dir: Path, lbcd_cert: Path, host: str
    ) -> None:
        write_config(lbcd_cert, "CERT")

        result = resolve({"app_data_dir": str(app_dir), "rpc_connect": f"{host}:9245"})

        assert isinstance(result, Continue)
        assert result.config.ca_file == str(lbcd_cert)

    def test_copy_preferred(self, resolve, app_dir: Path, lbcd_cert: Path) -> None:
        write_config(lbcd_cert, "CERT")
        copy = write_config(app_dir / "lbcd.cert", "COPY")

        result = resolve({"app_data_dir": str(app_dir)})

        assert isinstance(result, Continue)
        assert result.config.ca_file == str(copy)

    def test_remote_host_ignores_local_lbcd(
        self, resolve, app_dir: Path, lbcd_cert: Path
    ) -> None:
        write_config(lbcd_cert, "CERT")

        result = resolve({"app_data_dir": str(app_dir), "rpc_connect": "node.example"})

        assert isinstance(result, Continue)
        assert result.config.ca_file == str(app_dir / "lbcd.cert")

    def test_explicit_ca_file(self, resolve, lbcd_cert: Path, home_dir: Path) -> None:
        write_config(lbcd_cert, "CERT")

        result = resolve({"ca_file": "~/my.cert"})

        assert isinstance(result, Continue)
        assert result.config.ca_file == str(home_dir / "my.cert")

    def test_client_tls_disabled(self, resolve, lbcd_cert: Path) -> None:
        write_config(lbcd_cert, "CERT")

        result = resolve({"disable_client_tls": True})

        assert isinstance(result, Continue)
        assert result.config.ca_file == ""


class TestListeners:
    """Tests for the legacy RPC listener addresses."""

    def test_default_uses_network_server_port(self, resolve) -> None:
        result = resolve({"simnet": True})

        assert isinstance(result, Continue)
        assert result.net == SIMNET_PARAMS
        assert result.config.legacy_rpc_listeners == ["127.0.0.1:39244", "[::1]:39244"]

    def test_explicit_listeners_normalized(self, resolve, fake_lookup: list[str]) -> None:
        result = resolve(
            {"legacy_rpc_listeners": ["0.0.0.0", "0.0.0.0:9244", "::", "127.0.0.1:1234"]}
        )

        assert isinstance(result, Continue)
        assert result.config.legacy_rpc_listeners == [
            "0.0.0.0:9244",
            "[::]:9244",
            "127.0.0.1:1234",
        ]
        assert fake_lookup == []

    def test_invalid_listener(self, resolve) -> None:
        with pytest.raises(ConfigError, match="legacy RPC listeners"):
            resolve({"legacy_rpc_listeners": ["[::1"]})

    def test_lookup_failure(self, resolve) -> None:
        """Test that a resolver failure is fatal and keeps the cause."""

        def failing_lookup(host: str) -> list[str]:
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")

        with pytest.raises(ConfigError) as exc_info:
            resolve(lookup_host=failing_lookup)
        assert isinstance(exc_info.value.__cause__, socket.gaierror)

    def test_server_tls_disabled(self, resolve) -> None:
        result = resolve({"disable_server_tls": True, "legacy_rpc_listeners": ["127.0.0.1"]})

        assert isinstance(result, Continue)
        assert result.config.legacy_rpc_listeners == ["127.0.0.1:9244"]


class TestCreateFlags:
    """Tests for wallet creation flags checked during resolution."""

    def test_create_and_createtemp_conflict(self, resolve, app_dir: Path) -> None:
        with pytest.raises(ConflictError, match="--create and --createtemp"):
            resolve({"create": True, "create_temp": True, "app_data_dir": str(app_dir)})
        assert not app_dir.exists()

    def test_createtemp_requires_data_dir(self, resolve) -> None:
        with pytest.raises(ConfigError, match="failed to specify data directory"):
            resolve({"create_temp": True, "simnet": True})

    def test_createtemp_requires_simulation_network(self, resolve, app_dir: Path) -> None:
        with pytest.raises(ConfigError, match="network other than simnet"):
            resolve({"create_temp": True, "app_data_dir": str(app_dir)})

    @pytest.mark.parametrize("network", ["simnet", "regtest", "testnet"])
    def test_createtemp_allowed(self, resolve, app_dir: Path, network: str) -> None:
        result = resolve({"create_temp": True, "app_data_dir": str(app_dir), network: True})
        assert isinstance(result, Continue)

    def test_createtemp_with_deprecated_datadir(self, resolve, app_dir: Path) -> None:
        result = resolve({"create_temp": True, "data_dir": str(app_dir), "regtest": True})
        assert isinstance(result, Continue)


class TestLoadConfig:
    """Tests for resolution followed by the wallet bootstrap."""

    def test_plain_start(self, lookup_localhost, app_dir: Path) -> None:
        result = load_config({"app_data_dir": str(app_dir)}, lookup_host=lookup_localhost)
        assert isinstance(result, Continue)
        assert not app_dir.exists()

    def test_reports_missing_file(
        self, lookup_localhost, app_dir: Path, log_messages: list[str]
    ) -> None:
        load_config({"app_data_dir": str(app_dir)}, lookup_host=lookup_localhost)
        assert any("does not exist, using defaults" in message for message in log_messages)

    def test_version(self) -> None:
        result = load_config({"show_version": True})
        assert isinstance(result, Terminate)

    def test_createtemp(self, lookup_localhost, app_dir: Path, loader) -> None:
        result = load_config(
            {"create_temp": True, "simnet": True, "app_data_dir": str(app_dir)},
            lookup_host=lookup_localhost,
            creator=loader,
        )
        assert isinstance(result, Continue)
        assert (app_dir / "simnet" / "wallet.db").exists()
