from dataclasses import FrozenInstanceError
from pathlib import Path
import sys

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from app.tipsa_client.config import (  # noqa: E402
    URL_PRODUCCION,
    URL_TEST,
    TipsaConfig,
    get_base_url,
    get_tipsa_config,
)

_ENV_VARS = (
    "TIPSA_ENV",
    "TIPSA_BASE_URL",
    "TIPSA_AGENCIA",
    "TIPSA_CLIENTE",
    "TIPSA_PASSWORD",
    "TIPSA_IDIOMA",
    "TIPSA_TIMEOUT_CONNECT",
    "TIPSA_TIMEOUT_READ",
    "TIPSA_MAX_RETRIES",
    "TIPSA_BACKOFF_BASE",
    "TIPSA_BACKOFF_MAX",
    "TIPSA_ENCODING",
    "TIPSA_VERIFY_SSL",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TIPSA_AGENCIA", "000000")
    monkeypatch.setenv("TIPSA_CLIENTE", "123456")
    monkeypatch.setenv("TIPSA_PASSWORD", "miClave")
    return monkeypatch


def test_defaults_point_to_test_environment(clean_env):
    cfg = get_tipsa_config()
    assert cfg.base_url == URL_TEST
    assert cfg.language == "ES"
    assert cfg.verify_ssl is False
    assert cfg.service_url("WebServService") == URL_TEST + "WebServService"


def test_prod_environment_and_overrides(clean_env):
    clean_env.setenv("TIPSA_ENV", "prod")
    clean_env.setenv("TIPSA_MAX_RETRIES", "0")
    clean_env.setenv("TIPSA_ENCODING", "iso-8859-1")
    clean_env.setenv("TIPSA_VERIFY_SSL", "true")
    cfg = get_tipsa_config()
    assert cfg.base_url == URL_PRODUCCION
    assert cfg.max_retries == 0
    assert cfg.encoding == "iso-8859-1"
    assert cfg.verify_ssl is True


def test_base_url_override(clean_env):
    clean_env.setenv("TIPSA_BASE_URL", "https://mock.local/SOAP?service=")
    assert get_tipsa_config("prod").base_url == "https://mock.local/SOAP?service="


def test_missing_credentials(clean_env):
    clean_env.delenv("TIPSA_PASSWORD")
    with pytest.raises(RuntimeError, match="TIPSA_PASSWORD"):
        get_tipsa_config()


def test_invalid_environment():
    with pytest.raises(ValueError):
        get_base_url("staging")


def test_invalid_environment_from_env(clean_env):
    clean_env.setenv("TIPSA_ENV", "staging")
    with pytest.raises(ValueError, match="staging"):
        get_tipsa_config()


def test_invalid_environment_rejected_with_base_url_override(clean_env):
    clean_env.setenv("TIPSA_BASE_URL", "https://mock.local/SOAP?service=")
    with pytest.raises(ValueError, match="staging"):
        get_tipsa_config("staging")


def test_backoff_settings_from_env(clean_env):
    clean_env.setenv("TIPSA_BACKOFF_BASE", "0")
    clean_env.setenv("TIPSA_BACKOFF_MAX", "1.5")
    cfg = get_tipsa_config()
    assert cfg.backoff_base == 0.0
    assert cfg.backoff_max == 1.5


def test_config_is_immutable_and_hides_password():
    cfg = TipsaConfig(agencia="1", cliente="2", password="secreto")
    with pytest.raises(FrozenInstanceError):
        cfg.agencia = "3"
    assert "secreto" not in repr(cfg)
