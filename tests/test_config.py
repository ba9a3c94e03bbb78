import logging

import pytest

from poolkeeper.config import EngineSettings
from poolkeeper.config import MinAdaParameters
from poolkeeper.config import configure_logging

ENV_VARS = [
    "POOLKEEPER_SUPPORTED_DATUM_VERSION",
    "POOLKEEPER_LOG_LEVEL",
    "POOLKEEPER_MIN_ADA_POOL",
    "POOLKEEPER_MIN_ADA_PER_ASSET",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Make sure variables loaded from a .env file are removed after the test."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


def test_defaults():
    settings = EngineSettings()

    assert settings.supported_datum_version == 1
    assert settings.log_level == "INFO"
    assert settings.min_ada == MinAdaParameters()
    assert settings.min_ada.pool == 3_000_000
    assert settings.min_ada.per_datum_byte == 4_310


def test_from_env(clean_env):
    clean_env.setenv("POOLKEEPER_SUPPORTED_DATUM_VERSION", "2")
    clean_env.setenv("POOLKEEPER_LOG_LEVEL", "debug")
    clean_env.setenv("POOLKEEPER_MIN_ADA_PER_ASSET", "400000")

    settings = EngineSettings.from_env()

    assert settings.supported_datum_version == 2
    assert settings.log_level == "DEBUG"
    assert settings.min_ada.per_asset == 400_000
    assert settings.min_ada.pool == 3_000_000


def test_from_dotenv_file(clean_env, tmp_path):
    dotenv = tmp_path / ".env"
    dotenv.write_text("POOLKEEPER_MIN_ADA_POOL=4000000\nPOOLKEEPER_LOG_LEVEL=warning\n")
    clean_env.setenv("POOLKEEPER_LOG_LEVEL", "ERROR")

    settings = EngineSettings.from_env(str(dotenv))

    assert settings.min_ada.pool == 4_000_000
    assert settings.log_level == "ERROR"


def test_invalid_settings(clean_env):
    clean_env.setenv("POOLKEEPER_SUPPORTED_DATUM_VERSION", "0")

    with pytest.raises(ValueError):
        EngineSettings.from_env()

    with pytest.raises(ValueError):
        MinAdaParameters(per_asset=-1)


def test_configure_logging():
    logger = configure_logging(EngineSettings(log_level="DEBUG"))

    assert logger.name == "poolkeeper"
    assert logger.level == logging.DEBUG

    configure_logging()
    assert logger.level == logging.INFO
