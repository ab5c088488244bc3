"""
secret_source.py — read a base32 secret from a local file.

Only plain-text secret files (.txt / .key) are supported. Anything else,
QR code images included, fails with UnsupportedSecretFormatError.
"""

import logging
import os

from otp_auth.core.errors import (
    SecretReadError,
    UnsupportedSecretFormatError,
    ValidationError,
)
from otp_auth.core.otp_engine import validate_base32

logger = logging.getLogger(__name__)

TEXT_EXTENSIONS = (".txt", ".key")


def read_secret_from_file(path: str) -> str:
    """
    Return the validated base32 secret stored in *path*.

    - The file is read first, so a missing file is reported as unreadable
      whatever its extension.
    - Surrounding whitespace / trailing newline is stripped.

    Raises:
        ValidationError: empty path or content is not valid base32
        SecretReadError: file cannot be read
        UnsupportedSecretFormatError: extension is not .txt or .key
    """
    if not path:
        raise ValidationError("File path cannot be empty")

    ext = os.path.splitext(path)[1].lower()
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise SecretReadError(f"failed to read file: {e}") from e

    if ext not in TEXT_EXTENSIONS:
        raise UnsupportedSecretFormatError(
            f"unsupported secret file format {ext or '(none)'!r}: "
            "only plain-text .txt/.key files are supported, QR code parsing is not"
        )

    try:
        secret = data.decode("utf-8").strip()
        validate_base32(secret)
    except (UnicodeDecodeError, ValidationError) as e:
        raise ValidationError(f"invalid base32 string in file: {e}") from e

    logger.info("read secret from %s", path)
    return secret
