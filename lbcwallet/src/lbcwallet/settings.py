"""
Settings model for lbcwallet.

This module provides the configuration schema using pydantic-settings. Values
come from three sources:
1. Compiled-in defaults (field definitions)
2. Config file (``<appdata>/lbcwallet.conf``, TOML with flat keys)
3. Command-line options

Priority (highest to lowest):
1. Command-line options
2. Config file
3. Default values

Config file keys are the long option names, e.g.:

    appdata = "~/wallets/lbc"
    simnet = true
    rpclisten = ["127.0.0.1:18554", "[::1]:18554"]
    dbtimeout = "90s"

Every field remembers which source its value came from, so that "never
mentioned" and "mentioned with the default value" can be told apart.
"""

from __future__ import annotations

import re
import tomllib
from datetime import timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import Field, PrivateAttr, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from lbcwallet.errors import ConfigError
from lbcwallet.paths import app_data_dir

log = logger.bind(subsystem="config")

APP_NAME = "lbcwallet"
LBCD_APP_NAME = "lbcd"
DEFAULT_CONFIG_FILENAME = "lbcwallet.conf"
DEFAULT_LOG_DIRNAME = "logs"
DEFAULT_CA_FILENAME = "lbcd.cert"
DEFAULT_RPC_CERT_FILENAME = "rpc.cert"
DEFAULT_RPC_KEY_FILENAME = "rpc.key"
DEFAULT_RPC_MAX_CLIENTS = 10
DEFAULT_RPC_MAX_WEBSOCKETS = 25
DEFAULT_DB_TIMEOUT = timedelta(seconds=60)

_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def default_app_data_dir() -> str:
    return str(app_data_dir(APP_NAME))


def default_config_file() -> str:
    return str(Path(default_app_data_dir()) / DEFAULT_CONFIG_FILENAME)


def default_lbcd_ca_file() -> str:
    """Return the RPC certificate location of an lbcd node running on this machine."""
    return str(app_data_dir(LBCD_APP_NAME) / DEFAULT_RPC_CERT_FILENAME)


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration such as ``60s``, ``1m30s``, ``1.5h`` or ``500ms``.

    A bare number is taken as seconds.

    Raises:
        ValueError: If the string is not a valid duration
    """
    text = value.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]
        if not text:
            raise ValueError(f"invalid duration {value!r}")

    try:
        total = float(text)
    except ValueError:
        total = _parse_duration_parts(text, value)

    try:
        return timedelta(seconds=sign * total)
    except (OverflowError, ValueError) as e:
        raise ValueError(f"invalid duration {value!r}") from e


def _parse_duration_parts(text: str, value: str) -> float:
    pos = 0
    total = 0.0
    while pos < len(text):
        match = _DURATION_PART.match(text, pos)
        if match is None:
            raise ValueError(f"invalid duration {value!r}")
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()
    return total


class ConfigSource(str, Enum):
    DEFAULT = "default"
    FILE = "file"
    CLI = "cli"


class WalletSettings(BaseSettings):
    """
    Resolved lbcwallet configuration.

    Field aliases are the long option names used on the command line and as
    config file keys.
    """

    model_config = SettingsConfigDict(
        populate_by_name=True,
        extra="forbid",
    )

    # General application behavior
    config_file: str = Field(
        default_factory=default_config_file,
        alias="configfile",
        description="Path to configuration file",
    )
    show_version: bool = Field(
        default=False,
        alias="version",
        description="Display version information and exit",
    )
    create: bool = Field(
        default=False,
        description="Create the wallet if it does not exist",
    )
    create_temp: bool = Field(
        default=False,
        alias="createtemp",
        description=(
            "Create a temporary simulation wallet (pass=password) in the data "
            "directory indicated; must call with --appdata"
        ),
    )
    app_data_dir: str = Field(
        default_factory=default_app_data_dir,
        alias="appdata",
        description="Application data directory for wallet config, databases and logs",
    )
    testnet: bool = Field(
        default=False,
        description="Use the test network (default client port: 19245, server port: 19244)",
    )
    regtest: bool = Field(
        default=False,
        description=(
            "Use the regression test network (default client port: 29245, server port: 29244)"
        ),
    )
    simnet: bool = Field(
        default=False,
        description=(
            "Use the simulation test network (default client port: 39245, server port: 39244)"
        ),
    )
    signet: bool = Field(
        default=False,
        description="Use the signet test network (default client port: 49245, server port: 49244)",
    )
    signet_challenge: str = Field(
        default="",
        alias="signetchallenge",
        description=(
            "Connect to a custom signet network defined by this hex challenge "
            "instead of using the global default signet test network"
        ),
    )
    signet_seed_nodes: list[str] = Field(
        default_factory=list,
        alias="signetseednode",
        description="Seed nodes for the signet network instead of the default signet seeds",
    )
    debug_level: str = Field(
        default="info",
        alias="debuglevel",
        description="Logging level {trace, debug, info, warn, error, critical}",
    )
    log_dir: str = Field(
        default_factory=lambda: str(Path(default_app_data_dir()) / DEFAULT_LOG_DIRNAME),
        alias="logdir",
        description="Directory to log output",
    )
    profile: str = Field(
        default="",
        description="Enable HTTP profiling on given port -- port must be between 1024 and 65535",
    )
    db_timeout: timedelta = Field(
        default=DEFAULT_DB_TIMEOUT,
        alias="dbtimeout",
        description="The timeout value to use when opening the wallet database",
    )

    # Wallet options
    wallet_pass: SecretStr = Field(
        default=SecretStr(""),
        alias="walletpass",
        description="The public wallet password -- Only required if the wallet was created with one",
    )

    # RPC client options
    rpc_connect: str = Field(
        default="",
        alias="rpcconnect",
        description=(
            "Hostname/IP and port of lbcd RPC server to connect to (default localhost:9245, "
            "testnet: localhost:19245, regtest: localhost:29245, simnet: localhost:39245)"
        ),
    )
    ca_file: str = Field(
        default="",
        alias="cafile",
        description="File containing root certificates to authenticate TLS connections with lbcd",
    )
    disable_client_tls: bool = Field(
        default=False,
        alias="noclienttls",
        description="Disable TLS for the RPC client",
    )
    skip_verify: bool = Field(
        default=False,
        alias="skipverify",
        description="Skip verifying TLS for the RPC client",
    )
    proxy: str = Field(
        default="",
        description="Connect via SOCKS5 proxy (eg. 127.0.0.1:9050)",
    )
    proxy_user: str = Field(
        default="",
        alias="proxyuser",
        description="Username for proxy server",
    )
    proxy_pass: SecretStr = Field(
        default=SecretStr(""),
        alias="proxypass",
        description="Password for proxy server",
    )

    # RPC server options
    rpc_cert: str = Field(
        default_factory=lambda: str(Path(default_app_data_dir()) / DEFAULT_RPC_CERT_FILENAME),
        alias="rpccert",
        description="File containing the certificate file",
    )
    rpc_key: str = Field(
        default_factory=lambda: str(Path(default_app_data_dir()) / DEFAULT_RPC_KEY_FILENAME),
        alias="rpckey",
        description="File containing the certificate key",
    )
    one_time_tls_key: bool = Field(
        default=False,
        alias="onetimetlskey",
        description=(
            "Generate a new TLS certpair at startup, but only write the certificate to disk"
        ),
    )
    disable_server_tls: bool = Field(
        default=False,
        alias="noservertls",
        description="Disable TLS for the RPC server",
    )
    legacy_rpc_listeners: list[str] = Field(
        default_factory=list,
        alias="rpclisten",
        description=(
            "Listen for legacy RPC connections on this interface/port (default port: 9244, "
            "testnet: 19244, regtest: 29244, simnet: 39244)"
        ),
    )
    legacy_rpc_max_clients: int = Field(
        default=DEFAULT_RPC_MAX_CLIENTS,
        ge=0,
        alias="rpcmaxclients",
        description="Max number of legacy RPC clients for standard connections",
    )
    legacy_rpc_max_websockets: int = Field(
        default=DEFAULT_RPC_MAX_WEBSOCKETS,
        ge=0,
        alias="rpcmaxwebsockets",
        description="Max number of RPC websocket connections",
    )
    rpc_user: str = Field(
        default="",
        alias="rpcuser",
        description="Username for RPC and lbcd authentication",
    )
    rpc_pass: SecretStr = Field(
        default=SecretStr(""),
        alias="rpcpass",
        description="Password for RPC and lbcd authentication",
    )

    # Deprecated options
    data_dir: str = Field(
        default_factory=default_app_data_dir,
        alias="datadir",
        description="DEPRECATED -- use appdata instead",
    )

    _sources: dict[str, ConfigSource] = PrivateAttr(default_factory=dict)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Only explicit values are used.

        The config file and command line are merged by ``from_sources``, the
        process environment never configures the wallet implicitly.
        """
        return (init_settings,)

    @field_validator("db_timeout", mode="before")
    @classmethod
    def parse_db_timeout(cls, v: Any) -> Any:
        if isinstance(v, str):
            return parse_duration(v)
        return v

    @field_validator("profile")
    @classmethod
    def validate_profile_port(cls, v: str) -> str:
        if not v:
            return v
        try:
            port = int(v)
        except ValueError as e:
            raise ValueError("the profile port must be a number") from e
        if not 1024 <= port <= 65535:
            raise ValueError("the profile port must be between 1024 and 65535")
        return v

    @field_validator("debug_level")
    @classmethod
    def strip_debug_level(cls, v: str) -> str:
        return v.strip()

    @classmethod
    def from_sources(
        cls,
        file_values: dict[str, Any] | None = None,
        cli_values: dict[str, Any] | None = None,
    ) -> WalletSettings:
        """
        Build settings layering defaults, then file values, then CLI values.

        Both mappings are keyed by field name.

        Raises:
            pydantic.ValidationError: If a value is invalid or a name is unknown
        """
        file_values = dict(file_values or {})
        cli_values = dict(cli_values or {})

        aliases = {name: (info.alias or name) for name, info in cls.model_fields.items()}
        merged = {**file_values, **cli_values}
        settings = cls(**{aliases.get(name, name): value for name, value in merged.items()})

        sources = {name: ConfigSource.DEFAULT for name in cls.model_fields}
        sources.update({name: ConfigSource.FILE for name in file_values})
        sources.update({name: ConfigSource.CLI for name in cli_values})
        settings._sources = sources
        return settings

    def source_of(self, name: str) -> ConfigSource:
        """Return the source the value of field ``name`` came from."""
        if name not in type(self).model_fields:
            raise KeyError(name)
        return self._sources.get(name, ConfigSource.DEFAULT)

    def is_explicit(self, name: str) -> bool:
        """Return whether field ``name`` was given in the config file or on the command line."""
        return self.source_of(name) is not ConfigSource.DEFAULT

    def mark_source(self, name: str, source: ConfigSource) -> None:
        if name not in type(self).model_fields:
            raise KeyError(name)
        self._sources[name] = source


def option_names() -> dict[str, str]:
    """Map long option names (config file keys) to field names."""
    return {
        (field_info.alias or name): name for name, field_info in WalletSettings.model_fields.items()
    }


class ConfigFileSettingsSource(PydanticBaseSettingsSource):
    """
    Settings source that reads a flat TOML config file.

    Keys are long option names. Unknown keys and invalid syntax are errors; a
    missing file is not, ``missing`` is set so the caller can warn about it
    once resolution has succeeded.
    """

    _LIST_FIELDS = frozenset({"signet_seed_nodes", "legacy_rpc_listeners"})

    def __init__(self, settings_cls: type[BaseSettings], config_path: str | Path) -> None:
        super().__init__(settings_cls)
        self.config_path = Path(config_path)
        self.missing = False
        self._config: dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from the TOML file."""
        try:
            with open(self.config_path, "rb") as f:
                raw = tomllib.load(f)
        except FileNotFoundError:
            self.missing = True
            log.debug(f"Config file not found at {self.config_path}, using defaults")
            return
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML syntax in config file {self.config_path}: {e}") from e
        except OSError as e:
            raise ConfigError(f"Failed to load config from {self.config_path}: {e}") from e

        names = option_names()
        unknown = sorted(key for key in raw if key not in names)
        if unknown:
            raise ConfigError(
                f"Unknown option(s) {', '.join(unknown)} in config file {self.config_path}"
            )

        for key, value in raw.items():
            field_name = names[key]
            if field_name in self._LIST_FIELDS and isinstance(value, str):
                value = [value]
            self._config[field_name] = value

        log.info(f"Loaded config from {self.config_path}")

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        """Get field value from the config file."""
        value = self._config.get(field_name)
        return value, field_name, value is not None

    def __call__(self) -> dict[str, Any]:
        """Return all config values keyed by field name."""
        return dict(self._config)


__all__ = [
    "APP_NAME",
    "DEFAULT_CONFIG_FILENAME",
    "DEFAULT_CA_FILENAME",
    "DEFAULT_RPC_CERT_FILENAME",
    "DEFAULT_RPC_KEY_FILENAME",
    "ConfigSource",
    "WalletSettings",
    "ConfigFileSettingsSource",
    "default_app_data_dir",
    "default_config_file",
    "default_lbcd_ca_file",
    "option_names",
    "parse_duration",
]
