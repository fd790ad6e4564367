"""Credential loading: ~/.veracode/veracode.yml plus environment overrides."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from veracodetui.core.errors import ConfigurationError
from veracodetui.core.signer import decode_secret

ENV_KEY_ID = "VERACODE_API_KEY_ID"
ENV_KEY_SECRET = "VERACODE_API_KEY_SECRET"


@dataclass(frozen=True)
class Credentials:
    key_id: str
    key_secret: str  # hex

    def __repr__(self):
        return f"Credentials(key_id={self.key_id!r}, key_secret='***')"


def default_config_path() -> Path:
    return Path.home() / ".veracode" / "veracode.yml"


def _read_yaml(path: Path) -> dict:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as exc:
        raise ConfigurationError(f"failed to read config file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"failed to parse config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} is not a mapping")
    return data


def load_config(path: Optional[str] = None, environ=None) -> Credentials:
    """Return API credentials, failing closed when anything is missing.

    Layout of the file:

        api:
          key-id: <id>
          key-secret: <hex secret>

    ``VERACODE_API_KEY_ID`` / ``VERACODE_API_KEY_SECRET`` take precedence
    over the file; when both are set the file is not read at all.
    """
    env = os.environ if environ is None else environ
    key_id = env.get(ENV_KEY_ID, "").strip()
    key_secret = env.get(ENV_KEY_SECRET, "").strip()

    if not (key_id and key_secret):
        cfg_path = Path(path) if path else default_config_path()
        api = _read_yaml(cfg_path).get("api") or {}
        if not isinstance(api, dict):
            raise ConfigurationError("'api' section of config file must be a mapping")
        key_id = key_id or str(api.get("key-id") or "").strip()
        key_secret = key_secret or str(api.get("key-secret") or "").strip()

    if not key_id or not key_secret:
        raise ConfigurationError("API key-id and key-secret are required in config file")
    decode_secret(key_secret)
    return Credentials(key_id=key_id, key_secret=key_secret)
