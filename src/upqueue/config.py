"""Configuration loading for the upload queue."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import keyring
from keyring.errors import KeyringError

from upqueue.models import UploadConfig

logger = logging.getLogger(__name__)

SERVICE_NAME = "upqueue"
KEY_NAME = "auth_token"
TOKEN_ENV_VAR = "UPQUEUE_AUTH_TOKEN"
DEFAULT_CONFIG_PATH = Path("config/upload_config.json")


def get_auth_token() -> str | None:
    """Get the upload bearer token: system keyring first, then env var.

    Returns:
        The token, or ``None`` when neither source has one (uploads are
        then sent without an ``Authorization`` header).
    """
    try:
        token = keyring.get_password(SERVICE_NAME, KEY_NAME)
    except KeyringError as exc:
        logger.debug("Keyring unavailable, falling back to %s: %s", TOKEN_ENV_VAR, exc)
        token = None
    if token:
        return token

    token = os.environ.get(TOKEN_ENV_VAR)
    if token:
        return token

    return None


def set_auth_token(token: str) -> None:
    """Store the upload bearer token in the system keyring."""
    if not token or not token.strip():
        raise ValueError("Auth token cannot be empty")
    keyring.set_password(SERVICE_NAME, KEY_NAME, token)


def load_upload_config(config_path: Path | None = None) -> UploadConfig:
    """Load upload configuration from JSON, falling back to defaults.

    Reads from ``config/upload_config.json`` when *config_path* is ``None``.
    If the file does not exist, returns an ``UploadConfig`` with defaults.
    Unknown keys are ignored.  When the file does not set ``auth_token``
    it is filled from :func:`get_auth_token`.

    Args:
        config_path: Optional explicit path to upload_config.json.

    Returns:
        UploadConfig populated from file + keyring/env overrides.

    Raises:
        ValueError: If a value is invalid (e.g. ``threads <= 0``).
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    data: dict = {}
    if config_path.exists():
        with open(config_path) as f:
            data = json.load(f)

    # Only keep recognised fields
    field_names = {f.name for f in UploadConfig.__dataclass_fields__.values()}
    kwargs = {k: v for k, v in data.items() if k in field_names}

    config = UploadConfig(**kwargs)

    if config.auth_token is None:
        config.auth_token = get_auth_token()

    return config
