import pytest

from mtlsca.backends import CryptographyBackend
from mtlsca.config import Settings
from mtlsca.identity import validate_identity
from mtlsca.issuer import build_ca, sign_leaf_cert


@pytest.fixture(scope="session")
def identity():
    return validate_identity("Acme Corp", "Alice")


@pytest.fixture(scope="session")
def settings():
    return Settings(san=("127.0.0.1",))


@pytest.fixture(scope="session")
def backend():
    return CryptographyBackend()


@pytest.fixture(scope="session")
def ca(backend, identity, settings):
    return build_ca(backend, identity, settings)


@pytest.fixture(scope="session")
def leaf(backend, ca, identity, settings):
    return sign_leaf_cert(backend, ca, identity, settings)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for var in (
        "MTLSCA_OUTPUT_ROOT",
        "MTLSCA_SEARCH_ROOTS",
        "MTLSCA_BACKEND",
        "MTLSCA_PKCS12_PROFILE",
        "MTLSCA_OPENSSL",
        "MTLSCA_P12_PASSWORD",
    ):
        monkeypatch.delenv(var, raising=False)
