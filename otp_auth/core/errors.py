"""
errors.py — exception types raised across otp_auth.

Every error is recovered at the boundary that detects it and turned into
user-visible text (render model, CLI message or JSON body). None of them
stops the refresh loop.
"""


class OTPAuthError(Exception):
    """Base class for all otp_auth errors."""


class LoadError(OTPAuthError):
    """providers.json exists but could not be read or parsed."""


class SaveError(OTPAuthError):
    """
    providers.json could not be written.

    The add or remove that triggered the write is rolled back, so the
    in-memory list always matches the file. This differs on purpose from
    keeping the unsaved provider in memory: with unique names a retry of
    the same add would otherwise be rejected as a duplicate.
    """


class ValidationError(OTPAuthError, ValueError):
    """Rejected input: empty name, empty secret, bad base32, duplicate name."""


class CodeGenerationError(OTPAuthError):
    """The OTP library failed to derive a code for a provider."""


class SecretReadError(OTPAuthError):
    """A secret file could not be read."""


class UnsupportedSecretFormatError(OTPAuthError):
    """Secret extraction was asked for a file type other than plain text."""


class BrowseError(OTPAuthError):
    """A directory could not be listed by the file picker."""
