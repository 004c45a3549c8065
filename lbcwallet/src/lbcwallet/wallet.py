"""
Wallet database creation and opening.

The wallet database holds two encrypted sections:
- public: network and birthday, encrypted with the public passphrase
- private: the wallet seed, encrypted with the private passphrase

Both use Fernet (AES-128-CBC + HMAC) with a PBKDF2-derived key and a random
salt prepended to the token.
"""

from __future__ import annotations

import base64
import json
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from loguru import logger

from lbcwallet.errors import WalletCreationError, WalletExistsError
from lbcwallet.netparams import NetParams
from lbcwallet.paths import file_exists

log = logger.bind(subsystem="wallet")

WALLET_DB_NAME = "wallet.db"
WALLET_DB_VERSION = 1

# Seed length bounds in bytes (128 to 512 bits)
MIN_SEED_BYTES = 16
MAX_SEED_BYTES = 64
RECOMMENDED_SEED_LEN = 32

# Public passphrase used when the user does not choose one
INSECURE_PUBLIC_PASSPHRASE = b"public"
# Private passphrase of temporary simulation wallets
SIMULATION_PRIVATE_PASSPHRASE = b"password"

KDF_ITERATIONS = 600_000
_SALT_LEN = 16


def generate_seed(length: int = RECOMMENDED_SEED_LEN) -> bytes:
    """
    Generate a wallet seed from secure entropy.

    Raises:
        ValueError: If ``length`` is outside the allowed seed length
    """
    if not MIN_SEED_BYTES <= length <= MAX_SEED_BYTES:
        raise ValueError(
            f"seed length must be between {MIN_SEED_BYTES * 8} and {MAX_SEED_BYTES * 8} bits"
        )
    return secrets.token_bytes(length)


def wallet_db_path(db_dir: str | Path) -> Path:
    return Path(db_dir) / WALLET_DB_NAME


def wallet_exists(db_path: str | Path) -> bool:
    """Return whether a wallet database file exists at ``db_path``."""
    return file_exists(db_path)


@dataclass(frozen=True)
class WalletInfo:
    network: str
    birthday: datetime
    created: datetime


class WalletCreator(Protocol):
    """Creates a wallet database in a network directory."""

    def create_wallet(
        self,
        db_dir: Path,
        *,
        public_passphrase: bytes,
        private_passphrase: bytes,
        seed: bytes,
        birthday: datetime,
        net: NetParams,
    ) -> Path: ...


def _derive_key(passphrase: bytes, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase))


def encrypt_section(data: bytes, passphrase: bytes, iterations: int = KDF_ITERATIONS) -> bytes:
    """Encrypt ``data`` with a passphrase; returns salt + Fernet token."""
    salt = os.urandom(_SALT_LEN)
    fernet = Fernet(_derive_key(passphrase, salt, iterations))
    return salt + fernet.encrypt(data)


def decrypt_section(blob: bytes, passphrase: bytes, iterations: int = KDF_ITERATIONS) -> bytes:
    """
    Decrypt a section produced by ``encrypt_section``.

    Raises:
        ValueError: If the passphrase is wrong or the data is corrupted
    """
    if len(blob) < _SALT_LEN:
        raise ValueError("Invalid encrypted data")

    salt, token = blob[:_SALT_LEN], blob[_SALT_LEN:]
    fernet = Fernet(_derive_key(passphrase, salt, iterations))
    try:
        return fernet.decrypt(token)
    except InvalidToken as e:
        raise ValueError("Decryption failed - wrong passphrase or corrupted wallet") from e


class WalletLoader:
    """
    Creates and opens wallet databases.

    Args:
        kdf_iterations: PBKDF2 iterations used for both passphrases of new
            wallets (existing wallets record their own)
    """

    def __init__(self, kdf_iterations: int = KDF_ITERATIONS) -> None:
        self.kdf_iterations = kdf_iterations

    def create_wallet(
        self,
        db_dir: Path,
        *,
        public_passphrase: bytes,
        private_passphrase: bytes,
        seed: bytes,
        birthday: datetime,
        net: NetParams,
    ) -> Path:
        """
        Write a new wallet database to ``db_dir``.

        Raises:
            WalletExistsError: If the database file already exists
            WalletCreationError: If the seed or passphrase is invalid or the
                file cannot be written
        """
        if not MIN_SEED_BYTES <= len(seed) <= MAX_SEED_BYTES:
            raise WalletCreationError(
                f"seed must be between {MIN_SEED_BYTES * 8} and {MAX_SEED_BYTES * 8} bits"
            )
        if not private_passphrase:
            raise WalletCreationError("private passphrase must not be empty")

        db_path = wallet_db_path(db_dir)
        public_data = json.dumps(
            {
                "network": net.name,
                "birthday": int(birthday.timestamp()),
                "created": int(datetime.now(timezone.utc).timestamp()),
            }
        ).encode("utf-8")

        record = {
            "version": WALLET_DB_VERSION,
            "network": net.name,
            "iterations": self.kdf_iterations,
            "public": base64.b64encode(
                encrypt_section(public_data, public_passphrase, self.kdf_iterations)
            ).decode("ascii"),
            "private": base64.b64encode(
                encrypt_section(seed, private_passphrase, self.kdf_iterations)
            ).decode("ascii"),
        }

        try:
            fd = os.open(db_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError as e:
            raise WalletExistsError(f"the wallet database file `{db_path}` already exists") from e
        except OSError as e:
            raise WalletCreationError(f"unable to create {db_path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(record, f)
        except OSError as e:
            # Never leave a partial database behind
            db_path.unlink(missing_ok=True)
            raise WalletCreationError(f"unable to write {db_path}: {e}") from e

        log.info(f"Created {net.name} wallet database at {db_path}")
        return db_path

    def open_wallet(self, db_dir: Path, public_passphrase: bytes) -> WalletInfo:
        """
        Read the public section of the wallet in ``db_dir``.

        Raises:
            FileNotFoundError: If there is no wallet database
            OSError: If the database cannot be read
            ValueError: If the database is malformed or the public passphrase is wrong
        """
        db_path = wallet_db_path(db_dir)
        try:
            record = json.loads(db_path.read_text(encoding="utf-8"))
            if record.get("version") != WALLET_DB_VERSION:
                raise ValueError(f"unsupported wallet database version {record.get('version')}")
            public_blob = base64.b64decode(record["public"])
            iterations = int(record["iterations"])
        except (AttributeError, KeyError, TypeError, json.JSONDecodeError) as e:
            raise ValueError(f"malformed wallet database {db_path}") from e

        public_data = decrypt_section(public_blob, public_passphrase, iterations)
        try:
            public = json.loads(public_data)
            info = WalletInfo(
                network=public["network"],
                birthday=datetime.fromtimestamp(public["birthday"], tz=timezone.utc),
                created=datetime.fromtimestamp(public["created"], tz=timezone.utc),
            )
        except (KeyError, TypeError, OverflowError, OSError, json.JSONDecodeError) as e:
            raise ValueError(f"malformed public section in wallet database {db_path}") from e

        log.debug(f"Opened wallet database {db_path}")
        return info


__all__ = [
    "WALLET_DB_NAME",
    "MIN_SEED_BYTES",
    "MAX_SEED_BYTES",
    "RECOMMENDED_SEED_LEN",
    "INSECURE_PUBLIC_PASSPHRASE",
    "SIMULATION_PRIVATE_PASSPHRASE",
    "WalletInfo",
    "WalletCreator",
    "WalletLoader",
    "generate_seed",
    "wallet_db_path",
    "wallet_exists",
    "encrypt_section",
    "decrypt_section",
]
