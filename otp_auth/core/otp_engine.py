"""
otp_engine.py — TOTP code derivation and window arithmetic.

Pure functions only:
- No file I/O, no shared state; callers pass the secret and the instant.
- HMAC-SHA1 / RFC 6238 itself is delegated to pyotp.
- Base32 validation is strict (RFC 4648): uppercase alphabet and full
  '=' padding, the same rule the provider form applies.
"""

import base64
import binascii
import datetime
import logging
import time
from typing import Optional

import pyotp

from otp_auth.core.errors import CodeGenerationError, ValidationError

logger = logging.getLogger(__name__)

# --- Config / constants ----------------------------------------------------
DEFAULT_DIGITS = 6          # standard: 6 digits
DEFAULT_TIME_STEP = 30      # TOTP step (seconds)


def _now(now: Optional[float]) -> float:
    return time.time() if now is None else now


def validate_base32(secret: str) -> str:
    """
    Check that *secret* is a well-formed base32 string and return it.

    - No case folding and no padding repair: "jbswy3dpehpk3pxp" is rejected.
    - An empty string is rejected as well.

    Raises:
        ValidationError: if the secret does not decode as base32
    """
    if not secret:
        raise ValidationError("Secret cannot be empty")
    try:
        base64.b32decode(secret)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Secret must be a valid base32 string") from e
    return secret


def window_of(now: Optional[float] = None, timestep: int = DEFAULT_TIME_STEP) -> int:
    """Return the TOTP counter (step number) that contains *now*."""
    return int(_now(now)) // timestep


def remaining_seconds(now: Optional[float] = None, timestep: int = DEFAULT_TIME_STEP) -> int:
    """
    Seconds left in the current window, always in [1, timestep].

    Equals *timestep* exactly when the epoch second is window-aligned.
    Does not depend on any secret.
    """
    return timestep - (int(_now(now)) % timestep)


def generate(
    secret: str,
    now: Optional[float] = None,
    digits: int = DEFAULT_DIGITS,
    timestep: int = DEFAULT_TIME_STEP,
) -> str:
    """
    Derive the TOTP code of *secret* for the window containing *now*.

    Two calls inside the same window return the same code.

    Arguments:
        secret: base32 secret, already validated by the caller
        now: epoch seconds (defaults to time.time())
        digits: number of OTP digits
        timestep: window length in seconds

    Returns:
        str: zero-padded code

    Raises:
        CodeGenerationError: wraps whatever pyotp raised (bad base32 that
            slipped through, negative time step, ...)
    """
    instant = _now(now)
    try:
        # aware datetime keeps pyotp on the UTC path (no local DST round-trip)
        for_time = datetime.datetime.fromtimestamp(int(instant), tz=datetime.timezone.utc)
        code = pyotp.TOTP(secret, digits=digits, interval=timestep).at(for_time)
    except (binascii.Error, ValueError, TypeError, OverflowError, OSError) as e:
        raise CodeGenerationError(f"failed to generate code: {e}") from e
    logger.debug("generated code for window %d", window_of(instant, timestep))
    return code
