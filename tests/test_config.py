"""Tests for credential loading."""

import pytest

from veracodetui.core.config import Credentials, load_config
from veracodetui.core.errors import ConfigurationError


def _write(tmp_path, text):
    path = tmp_path / "veracode.yml"
    path.write_text(text)
    return str(path)


def test_reads_api_section(tmp_path):
    path = _write(tmp_path, "api:\n  key-id: abc\n  key-secret: 00ff\noauth:\n  enabled: true\n")
    assert load_config(path, environ={}) == Credentials("abc", "00ff")


def test_environment_overrides_file(tmp_path):
    path = _write(tmp_path, "api:\n  key-id: from-file\n  key-secret: 00ff\n")
    env = {"VERACODE_API_KEY_ID": "from-env"}
    creds = load_config(path, environ=env)
    assert creds.key_id == "from-env"
    assert creds.key_secret == "00ff"


def test_environment_alone_skips_file(tmp_path):
    env = {"VERACODE_API_KEY_ID": "id", "VERACODE_API_KEY_SECRET": "aa"}
    creds = load_config(str(tmp_path / "missing.yml"), environ=env)
    assert creds == Credentials("id", "aa")


def test_missing_file(tmp_path):
    with pytest.raises(ConfigurationError, match="failed to read"):
        load_config(str(tmp_path / "missing.yml"), environ={})


@pytest.mark.parametrize("text", [
    "api:\n  key-id: abc\n",
    "api:\n  key-secret: 00ff\n",
    "other: 1\n",
    "",
])
def test_missing_fields(tmp_path, text):
    with pytest.raises(ConfigurationError, match="key-id and key-secret are required"):
        load_config(_write(tmp_path, text), environ={})


def test_malformed_yaml(tmp_path):
    with pytest.raises(ConfigurationError, match="failed to parse"):
        load_config(_write(tmp_path, "api: [unclosed\n"), environ={})


def test_secret_masked_in_repr():
    assert "00ff" not in repr(Credentials("id", "00ff"))


def test_non_hex_secret_from_environment():
    env = {"VERACODE_API_KEY_ID": "id", "VERACODE_API_KEY_SECRET": "not-hex"}
    with pytest.raises(ConfigurationError, match="not valid hex"):
        load_config(environ=env)


def test_odd_length_secret_in_file(tmp_path):
    path = _write(tmp_path, "api:\n  key-id: abc\n  key-secret: abc\n")
    with pytest.raises(ConfigurationError, match="not valid hex"):
        load_config(path, environ={})
