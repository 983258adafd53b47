# mtlsca/config.py
"""
Runtime settings for the issuer.

Every value has a documented default and may be overridden from the
environment (names below) and then from the command line. The settings
object is built once at startup and handed to whoever needs it.
"""
from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from .errors import ConfigError

OUTPUT_ROOT_ENV = "MTLSCA_OUTPUT_ROOT"
SEARCH_ROOTS_ENV = "MTLSCA_SEARCH_ROOTS"
BACKEND_ENV = "MTLSCA_BACKEND"
PKCS12_PROFILE_ENV = "MTLSCA_PKCS12_PROFILE"
OPENSSL_ENV = "MTLSCA_OPENSSL"
PASSWORD_ENV = "MTLSCA_P12_PASSWORD"

MIN_CA_KEY_SIZE = 3072
MIN_LEAF_KEY_SIZE = 2048

BACKENDS = ("cryptography", "openssl")


class Pkcs12Profile(str, enum.Enum):
    # PBES2 / AES-256-CBC with a SHA-256 MAC
    MODERN = "modern"
    # PBE-SHA1-3DES with a SHA-1 MAC, for importers that predate PBES2
    LEGACY = "legacy"


def default_output_root() -> Path:
    return Path.home() / "mtls-certs"


@dataclass(frozen=True)
class Settings:
    output_root: Path | None = None
    search_roots: tuple[Path, ...] = ()
    backend: str = "cryptography"
    pkcs12_profile: Pkcs12Profile = Pkcs12Profile.MODERN
    openssl_path: str = "openssl"
    ca_key_size: int = MIN_CA_KEY_SIZE
    leaf_key_size: int = MIN_LEAF_KEY_SIZE
    validity_days: int = 365
    san: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        kwargs: dict = {}

        if env.get(OUTPUT_ROOT_ENV):
            kwargs["output_root"] = Path(env[OUTPUT_ROOT_ENV]).expanduser()
        if env.get(SEARCH_ROOTS_ENV):
            kwargs["search_roots"] = tuple(
                Path(p).expanduser() for p in env[SEARCH_ROOTS_ENV].split(os.pathsep) if p
            )
        if env.get(BACKEND_ENV):
            kwargs["backend"] = env[BACKEND_ENV].strip().lower()
        if env.get(PKCS12_PROFILE_ENV):
            kwargs["pkcs12_profile"] = parse_profile(env[PKCS12_PROFILE_ENV])
        if env.get(OPENSSL_ENV):
            kwargs["openssl_path"] = env[OPENSSL_ENV]

        return cls(**kwargs).validate()

    def override(self, **changes) -> "Settings":
        """Return a copy with the non-None ``changes`` applied."""
        changes = {k: v for k, v in changes.items() if v is not None}
        if "pkcs12_profile" in changes:
            changes["pkcs12_profile"] = parse_profile(changes["pkcs12_profile"])
        return replace(self, **changes).validate()

    def validate(self) -> "Settings":
        if self.backend not in BACKENDS:
            raise ConfigError(
                f"unknown backend {self.backend!r}, expected one of {', '.join(BACKENDS)}"
            )
        if self.ca_key_size < MIN_CA_KEY_SIZE:
            raise ConfigError(f"CA key size must be at least {MIN_CA_KEY_SIZE} bits")
        if self.leaf_key_size < MIN_LEAF_KEY_SIZE:
            raise ConfigError(f"leaf key size must be at least {MIN_LEAF_KEY_SIZE} bits")
        if self.validity_days <= 0:
            raise ConfigError("validity must be a positive number of days")
        return self


def parse_profile(value: str | Pkcs12Profile) -> Pkcs12Profile:
    if isinstance(value, Pkcs12Profile):
        return value
    try:
        return Pkcs12Profile(value.strip().lower())
    except ValueError:
        names = ", ".join(p.value for p in Pkcs12Profile)
        raise ConfigError(f"unknown PKCS#12 profile {value!r}, expected one of {names}") from None
