import logging

import pytest

from otp_auth.core.config import COARSE_INTERVAL, PROVIDERS_FILE, Settings
from otp_auth.core.logging_config import configure_logging


@pytest.fixture
def root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_defaults_from_empty_env():
    settings = Settings.from_env({})
    assert settings.providers_file == PROVIDERS_FILE
    assert settings.coarse_interval == COARSE_INTERVAL
    assert settings.log_file is None
    assert settings.port == 5000


def test_env_overrides():
    settings = Settings.from_env({
        "OTP_AUTH_PROVIDERS_FILE": " /tmp/p.json ",
        "OTP_AUTH_FINE_INTERVAL": "0.5",
        "OTP_AUTH_LOG_LEVEL": "debug",
        "OTP_AUTH_PORT": "8080",
    })
    assert settings.providers_file == "/tmp/p.json"
    assert settings.fine_interval == 0.5
    assert settings.log_level == "DEBUG"
    assert settings.port == 8080


@pytest.mark.parametrize("value", ["soon", "0", "-3"])
def test_bad_interval_is_rejected(value):
    with pytest.raises(ValueError, match="OTP_AUTH_COARSE_INTERVAL"):
        Settings.from_env({"OTP_AUTH_COARSE_INTERVAL": value})


def test_override_skips_none():
    settings = Settings().override(providers_file="x.json", log_file=None)
    assert settings.providers_file == "x.json"
    assert settings.log_file is None


def test_configure_logging_to_file(tmp_path, root_logger):
    log_file = tmp_path / "otp.log"
    configure_logging("info", str(log_file))

    logging.getLogger("otp_auth.test").info("hello")
    for handler in root_logger.handlers:
        handler.flush()

    assert root_logger.level == logging.INFO
    assert logging.getLogger("werkzeug").level == logging.WARNING
    assert "INFO otp_auth.test hello" in log_file.read_text(encoding="utf-8")


def test_configure_logging_unknown_level(root_logger):
    with pytest.raises(ValueError):
        configure_logging("chatty")
