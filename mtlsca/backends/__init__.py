# mtlsca/backends/__init__.py
from __future__ import annotations

from ..config import Settings
from ..errors import ConfigError
from .base import CertificateBackend, CertificateRequest, Credential
from .native import CryptographyBackend
from .openssl import OpenSSLBackend

__all__ = [
    "CertificateBackend",
    "CertificateRequest",
    "Credential",
    "CryptographyBackend",
    "OpenSSLBackend",
    "get_backend",
]


def get_backend(settings: Settings) -> CertificateBackend:
    if settings.backend == "cryptography":
        return CryptographyBackend()
    if settings.backend == "openssl":
        return OpenSSLBackend(settings.openssl_path)
    raise ConfigError(f"unknown backend {settings.backend!r}")
