"""Provider persistence (providers.json)."""

from otp_auth.database.provider_store import Provider, ProviderStore

__all__ = ["Provider", "ProviderStore"]
