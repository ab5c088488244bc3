"""
config.py — runtime settings for otp_auth.

Defaults live in module constants; `Settings.from_env()` lets the
environment override them and the CLI overrides the result again.

Env (all optional):
  OTP_AUTH_PROVIDERS_FILE="providers.json"
  OTP_AUTH_COARSE_INTERVAL="15"     # seconds between code refreshes
  OTP_AUTH_FINE_INTERVAL="1"        # seconds between countdown updates
  OTP_AUTH_LOG_LEVEL="WARNING"
  OTP_AUTH_LOG_FILE=""              # empty -> stderr
  OTP_AUTH_HOST="127.0.0.1"
  OTP_AUTH_PORT="5000"
"""

import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

PROVIDERS_FILE = "providers.json"
COARSE_INTERVAL = 15.0  # half a TOTP window, tolerates drift at the boundary
FINE_INTERVAL = 1.0
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 5000


def _number(env: Mapping[str, str], key: str, default, cast):
    raw = env.get(key, "").strip()
    if not raw:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{key} must be positive, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    providers_file: str = PROVIDERS_FILE
    coarse_interval: float = COARSE_INTERVAL
    fine_interval: float = FINE_INTERVAL
    log_level: str = "WARNING"
    log_file: Optional[str] = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if env is None else env
        return cls(
            providers_file=env.get("OTP_AUTH_PROVIDERS_FILE", "").strip() or PROVIDERS_FILE,
            coarse_interval=_number(env, "OTP_AUTH_COARSE_INTERVAL", COARSE_INTERVAL, float),
            fine_interval=_number(env, "OTP_AUTH_FINE_INTERVAL", FINE_INTERVAL, float),
            log_level=(env.get("OTP_AUTH_LOG_LEVEL", "").strip() or "WARNING").upper(),
            log_file=env.get("OTP_AUTH_LOG_FILE", "").strip() or None,
            host=env.get("OTP_AUTH_HOST", "").strip() or DEFAULT_HOST,
            port=_number(env, "OTP_AUTH_PORT", DEFAULT_PORT, int),
        )

    def override(self, **changes) -> "Settings":
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
