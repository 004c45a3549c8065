"""
Shared path utilities for lbcwallet data directories.

This module provides consistent path handling for the application data
directory, per-network wallet directories and user-supplied paths that may
contain environment variables or a leading ``~``.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path


def clean_and_expand_path(path: str) -> str:
    """
    Expand environment variables and a leading ``~`` in a path, then clean it.

    ``~`` expands to the current user's home directory and ``~otheruser`` to
    that user's home directory. When the user cannot be looked up the current
    working directory is used instead.

    Args:
        path: Path as given by the user (config file or command line)

    Returns:
        The expanded path with separators normalized for the host OS
    """
    if not path:
        return path

    path = os.path.expandvars(path)

    if not path.startswith("~"):
        return os.path.normpath(path)

    rest = path[1:]
    separators = os.sep + (os.altsep or "")

    user_name = ""
    for i, ch in enumerate(rest):
        if ch in separators:
            user_name, rest = rest[:i], rest[i:]
            break
    else:
        user_name, rest = rest, ""

    home_dir = os.path.expanduser("~" + user_name)
    # expanduser returns its input unchanged when the lookup fails
    if home_dir.startswith("~") or not home_dir:
        home_dir = "."

    return os.path.normpath(os.path.join(home_dir, rest.lstrip(separators)))


def app_data_dir(app_name: str) -> Path:
    """
    Get the default per-user application data directory for ``app_name``.

    Returns:
        - Windows: %LOCALAPPDATA%\\<AppName> (falls back to %APPDATA%)
        - macOS: ~/Library/Application Support/<AppName>
        - Plan 9: ~/<appname>
        - Others: ~/.<appname>
    """
    app_name = app_name.lstrip(".")
    if not app_name:
        return Path(".")

    upper_name = app_name[0].upper() + app_name[1:]
    lower_name = app_name[0].lower() + app_name[1:]

    if sys.platform == "win32":
        app_data = os.environ.get("LOCALAPPDATA") or os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / upper_name

    home_dir = Path.home()
    if sys.platform == "darwin":
        return home_dir / "Library" / "Application Support" / upper_name
    if sys.platform.startswith("plan9"):
        return home_dir / lower_name

    return home_dir / f".{lower_name}"


def file_exists(path: str | Path) -> bool:
    """Return whether ``path`` exists. Permission errors are propagated."""
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    return True


def ensure_dir(path: str | Path) -> Path:
    """
    Create ``path`` (and parents) with owner-only permissions if missing.

    Idempotent: an existing directory is left untouched.

    Raises:
        NotADirectoryError: If ``path`` exists but is not a directory
    """
    directory = Path(path)
    if directory.exists() and not directory.is_dir():
        raise NotADirectoryError(f"Path '{directory}' is not a directory")

    directory.mkdir(mode=0o700, parents=True, exist_ok=True)
    return directory
