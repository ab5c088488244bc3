"""
provider_store.py — durable list of OTP providers (providers.json).

File format (2-space indented JSON, UTF-8):

    [
      {
        "Name": "work",
        "Secret": "JBSWY3DPEHPK3PXP"
      }
    ]

Rules:
- Missing file -> empty list (first run), not an error.
- Unreadable / malformed file -> LoadError; the caller keeps going with an
  empty list and the file is left alone until the next successful write.
- Every mutation is written through immediately. Writes go to a temp file in
  the same directory and are moved into place with os.replace, so a crash
  never leaves a truncated providers.json.
- Stored secrets are not re-validated on load; a bad one shows up as a code
  generation error when the provider is selected.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from otp_auth.core.config import PROVIDERS_FILE
from otp_auth.core.errors import LoadError, SaveError, ValidationError
from otp_auth.core.otp_engine import validate_base32

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Provider:
    name: str
    secret: str

    @classmethod
    def create(cls, name: str, secret: str) -> "Provider":
        """Build a provider from user input; surrounding whitespace is trimmed."""
        name = (name or "").strip()
        secret = (secret or "").strip()
        if not name:
            raise ValidationError("Provider name cannot be empty")
        validate_base32(secret)
        return cls(name=name, secret=secret)

    def to_json(self) -> dict:
        return {"Name": self.name, "Secret": self.secret}

    @classmethod
    def from_json(cls, item) -> "Provider":
        if not isinstance(item, dict):
            raise ValueError(f"expected an object, got {type(item).__name__}")
        # field names are matched case-insensitively ("Name" or "name")
        fields = {str(k).lower(): v for k, v in item.items()}
        name = fields.get("name", "")
        secret = fields.get("secret", "")
        if not isinstance(name, str) or not isinstance(secret, str):
            raise ValueError("Name and Secret must be strings")
        return cls(name=name, secret=secret)


class ProviderStore:
    """Ordered providers plus the path they persist to."""

    def __init__(self, path: str = PROVIDERS_FILE, providers: Optional[List[Provider]] = None):
        self.path = path
        self._providers: List[Provider] = list(providers or [])

    # --- Sequence access ---------------------------------------------------
    def __len__(self) -> int:
        return len(self._providers)

    def __getitem__(self, index: int) -> Provider:
        return self._providers[index]

    def __iter__(self) -> Iterator[Provider]:
        return iter(list(self._providers))

    def names(self) -> List[str]:
        return [p.name for p in self._providers]

    def index_of(self, name: str) -> Optional[int]:
        for i, provider in enumerate(self._providers):
            if provider.name == name:
                return i
        return None

    # --- Load / save -------------------------------------------------------
    @classmethod
    def load(cls, path: str = PROVIDERS_FILE) -> "ProviderStore":
        """
        Read providers from *path*.

        Raises:
            LoadError: file exists but cannot be read or is not a JSON list
                of {"Name", "Secret"} objects
        """
        if not os.path.exists(path):
            logger.info("%s not found, starting with no providers", path)
            return cls(path)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError) as e:
            raise LoadError(f"failed to read file: {e}") from e
        except json.JSONDecodeError as e:
            raise LoadError(f"failed to unmarshal providers: {e}") from e

        if data is None:
            data = []
        if not isinstance(data, list):
            raise LoadError("failed to unmarshal providers: expected a JSON array")
        try:
            providers = [Provider.from_json(item) for item in data]
        except ValueError as e:
            raise LoadError(f"failed to unmarshal providers: {e}") from e

        logger.info("loaded %d provider(s) from %s", len(providers), path)
        return cls(path, providers)

    @classmethod
    def open(cls, path: str = PROVIDERS_FILE) -> Tuple["ProviderStore", Optional[LoadError]]:
        """Like load(), but falls back to an empty store and hands back the error."""
        try:
            return cls.load(path), None
        except LoadError as e:
            logger.error("error loading providers from %s: %s", path, e)
            return cls(path), e

    def save(self) -> None:
        """
        Write the current list to self.path atomically.

        Raises:
            SaveError: directory or file could not be written
        """
        directory = os.path.dirname(os.path.abspath(self.path))
        payload = json.dumps([p.to_json() for p in self._providers], indent=2, ensure_ascii=False)
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=".providers-", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise SaveError(f"failed to write file: {e}") from e
        logger.info("saved %d provider(s) to %s", len(self._providers), self.path)

    # --- Mutations (write-through) ------------------------------------------
    def add(self, provider: Provider) -> int:
        """
        Append *provider* and persist. Returns its index.

        Raises:
            ValidationError: a provider with the same name exists (nothing
                is written)
            SaveError: write failed; the append is rolled back
        """
        if self.index_of(provider.name) is not None:
            raise ValidationError(f"Provider {provider.name!r} already exists")
        self._providers.append(provider)
        try:
            self.save()
        except SaveError:
            self._providers.pop()
            raise
        return len(self._providers) - 1

    def remove(self, index: int) -> Provider:
        """
        Remove the provider at *index* and persist.

        Raises:
            IndexError: no such provider
            SaveError: write failed; the provider is put back
        """
        if not 0 <= index < len(self._providers):
            raise IndexError(f"no provider at index {index}")
        removed = self._providers.pop(index)
        try:
            self.save()
        except SaveError:
            self._providers.insert(index, removed)
            raise
        return removed
