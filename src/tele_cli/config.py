"""Vault directory resolution and environment settings."""

import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

APP_NAME = "tele"
HOME_ENV = "TELE_HOME"
PASSWORD_ENV = "TELE_PASSWORD"
SSHPASS_ENV = "TELE_SSHPASS"
DEBUG_ENV = "TELE_DEBUG"
DIR_MODE = 0o700
FILE_MODE = 0o600


def user_config_dir():
    """Return the per-user configuration base directory for this platform."""
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if not appdata:
            raise RuntimeError("%APPDATA% is not defined")
        return Path(appdata)
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg and Path(xdg).is_absolute():
        return Path(xdg)
    return Path.home() / ".config"


def get_vault_dir(args_dir=None):
    """Get vault directory from args, TELE_HOME, or the user config dir."""
    if args_dir:
        path = Path(args_dir)
    elif os.environ.get(HOME_ENV):
        path = Path(os.environ[HOME_ENV])
    else:
        path = user_config_dir() / APP_NAME
    logger.debug("vault directory: %s", path)
    return path


def ensure_dir(path):
    """Create path (and parents) with owner-only permissions."""
    path = Path(path)
    path.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
    return path


def debug_enabled():
    return os.environ.get(DEBUG_ENV, "").lower() in ("1", "true", "yes")
