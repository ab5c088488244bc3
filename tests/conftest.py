import pytest

from otp_auth.database.provider_store import Provider, ProviderStore

# RFC 4226 / RFC 6238 test key "12345678901234567890" in base32
RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"
# 6-digit HOTP values for counters 0..3 (RFC 4226 appendix D)
RFC_CODES = ["755224", "287082", "359152", "969429"]
DEMO_SECRET = "JBSWY3DPEHPK3PXP"


class FakeClock:
    """Callable clock the tests move by hand."""

    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(59.0)


@pytest.fixture
def providers_path(tmp_path):
    return str(tmp_path / "providers.json")


@pytest.fixture
def empty_store(providers_path):
    return ProviderStore(providers_path)


@pytest.fixture
def rfc_store(providers_path):
    return ProviderStore(providers_path, [Provider("rfc", RFC_SECRET)])
