"""
Interactive terminal prompts for wallet creation.

Every prompt is repeated until the user enters a valid response. Line-based
answers are read from ``reader`` (normally stdin); passphrases are read with
masked input.
"""

from __future__ import annotations

import binascii
import os
import re
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import TextIO

import typer

from lbcwallet.wallet import (
    MAX_SEED_BYTES,
    MIN_SEED_BYTES,
    RECOMMENDED_SEED_LEN,
    generate_seed,
)

PASSPHRASE_ENV = "LBCWALLET_PASSPHRASE"

_INTEGER = re.compile(r"[+-]?\d+")


def _read_line(reader: TextIO) -> str:
    line = reader.readline()
    if not line:
        raise EOFError("unexpected end of input")
    return line


def _read_hidden(prompt: str) -> str:
    """Read a line without echoing it to the terminal."""
    return typer.prompt(
        prompt,
        default="",
        hide_input=True,
        show_default=False,
        prompt_suffix="",
    )


def prompt_list(
    reader: TextIO,
    prefix: str,
    valid_responses: Sequence[str],
    default_entry: str,
) -> str:
    """
    Prompt until the reply is one of ``valid_responses`` (case-insensitive).

    An empty reply selects ``default_entry``.
    """
    valid_strings = "/".join(valid_responses)
    if default_entry:
        prompt = f"{prefix} ({valid_strings}) [{default_entry}]: "
    else:
        prompt = f"{prefix} ({valid_strings}): "

    valid = {response.lower() for response in valid_responses}
    while True:
        typer.echo(prompt, nl=False)
        reply = _read_line(reader).strip().lower()
        if not reply:
            reply = default_entry.lower()
        if reply in valid:
            return reply


def prompt_list_bool(reader: TextIO, prefix: str, default_entry: str) -> bool:
    """Prompt for a yes/no answer."""
    response = prompt_list(reader, prefix, ["n", "no", "y", "yes"], default_entry)
    return response in ("y", "yes")


def prompt_unix_timestamp(reader: TextIO, prefix: str, default_entry: str) -> datetime:
    """Prompt for a Unix timestamp in seconds; invalid input just repeats the prompt."""
    prompt = f"{prefix} [{default_entry}]: "
    while True:
        typer.echo(prompt, nl=False)
        reply = _read_line(reader).strip().lower()
        if not reply:
            reply = default_entry
        if not _INTEGER.fullmatch(reply):
            continue
        try:
            return datetime.fromtimestamp(int(reply), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            continue


def prompt_passphrase(
    prefix: str,
    confirm: bool,
    *,
    read_secret: Callable[[str], str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> bytes:
    """
    Prompt for a non-empty passphrase, optionally asking for confirmation.

    A non-empty ``LBCWALLET_PASSPHRASE`` environment variable is returned as
    is, without prompting. On a confirmation mismatch both entries are
    discarded and the prompts start over.
    """
    env = os.environ if environ is None else environ
    override = env.get(PASSPHRASE_ENV, "")
    if override:
        return override.encode("utf-8")

    read = read_secret or _read_hidden
    while True:
        passphrase = read(f"{prefix}: ").strip().encode("utf-8")
        if not passphrase:
            continue

        if not confirm:
            return passphrase

        confirmation = read("Confirm passphrase: ").strip().encode("utf-8")
        if passphrase != confirmation:
            typer.echo("The entered passphrases do not match")
            continue

        return passphrase


def passphrase(
    confirm: bool,
    *,
    read_secret: Callable[[str], str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> bytes:
    """Prompt for the private passphrase of a new wallet."""
    return prompt_passphrase(
        "Enter the passphrase for your new wallet",
        confirm,
        read_secret=read_secret,
        environ=environ,
    )


def prompt_seed(reader: TextIO) -> bytes:
    """Prompt for an existing hex-encoded wallet seed of valid length."""
    while True:
        typer.echo("Enter existing wallet seed: ", nl=False)
        seed_str = _read_line(reader).strip().lower()
        try:
            seed = binascii.unhexlify(seed_str)
        except (binascii.Error, ValueError):
            seed = b""

        if MIN_SEED_BYTES <= len(seed) <= MAX_SEED_BYTES:
            return seed

        typer.echo(
            "Invalid seed specified.  Must be a hexadecimal value that is at least "
            f"{MIN_SEED_BYTES * 8} bits and at most {MAX_SEED_BYTES * 8} bits"
        )


def birthday(reader: TextIO) -> datetime:
    return prompt_unix_timestamp(
        reader,
        "Enter the birthday of the seed in Unix timestamp "
        "(the wallet will scan the chain from this time)",
        "0",
    )


def seed(reader: TextIO) -> tuple[bytes, datetime]:
    """
    Obtain the wallet generation seed and its birthday.

    The user is asked whether they have an existing seed. If not, a new seed
    is generated and shown once, and the user must acknowledge it with "OK";
    its birthday is now. Otherwise the seed is read from the user, followed
    by its birthday.
    """
    bday = datetime.now(timezone.utc)

    use_user_seed = prompt_list_bool(
        reader, "Do you have an existing wallet seed you want to use?", "no"
    )
    if not use_user_seed:
        new_seed = generate_seed(RECOMMENDED_SEED_LEN)

        typer.echo(f"Your wallet generation seed is: {new_seed.hex()}")
        typer.echo(
            "\nIMPORTANT: Keep the seed in a safe place as you will NOT be able "
            "to restore your wallet without it.\n"
        )

        while True:
            typer.echo(
                "Once you have stored the seed in a safe and secure location, "
                'enter "OK" to continue: ',
                nl=False,
            )
            confirm_seed = _read_line(reader).strip().strip('"')
            if confirm_seed == "OK":
                break

        return new_seed, bday

    user_seed = prompt_seed(reader)
    return user_seed, birthday(reader)


__all__ = [
    "PASSPHRASE_ENV",
    "prompt_list",
    "prompt_list_bool",
    "prompt_unix_timestamp",
    "prompt_passphrase",
    "passphrase",
    "prompt_seed",
    "birthday",
    "seed",
]
