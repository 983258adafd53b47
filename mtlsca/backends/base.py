# mtlsca/backends/base.py
from __future__ import annotations

import abc
import datetime as dt
import ipaddress
from dataclasses import dataclass

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID

from ..config import Pkcs12Profile


@dataclass(frozen=True)
class CertificateRequest:
    """Everything a backend needs to know to produce one certificate."""

    subject: x509.Name
    key_size: int
    validity_days: int
    is_ca: bool
    san: tuple[str, ...] = ()


@dataclass(frozen=True)
class Credential:
    certificate: x509.Certificate
    private_key: rsa.RSAPrivateKey


class CertificateBackend(abc.ABC):
    name = ""

    @abc.abstractmethod
    def self_sign(self, request: CertificateRequest) -> Credential:
        """Generate a key pair and a certificate signed by that same key."""

    @abc.abstractmethod
    def sign(self, request: CertificateRequest, issuer: Credential) -> Credential:
        """Generate a key pair and a certificate signed by ``issuer``."""

    @abc.abstractmethod
    def export_pkcs12(
        self,
        friendly_name: str,
        leaf: Credential,
        chain: list[x509.Certificate],
        password: bytes,
        profile: Pkcs12Profile,
    ) -> bytes:
        ...


# --- Extension policy shared by every backend ---

def key_usage(is_ca: bool) -> x509.KeyUsage:
    return x509.KeyUsage(
        digital_signature=True,
        key_encipherment=not is_ca,
        content_commitment=False,
        data_encipherment=False,
        key_agreement=False,
        key_cert_sign=is_ca,
        crl_sign=is_ca,
        encipher_only=False,
        decipher_only=False,
    )


def extended_key_usage() -> x509.ExtendedKeyUsage:
    return x509.ExtendedKeyUsage([ExtendedKeyUsageOID.CLIENT_AUTH])


def general_names(values: tuple[str, ...]) -> list[x509.GeneralName]:
    names: list[x509.GeneralName] = []
    for value in values:
        try:
            names.append(x509.IPAddress(ipaddress.ip_address(value)))
        except ValueError:
            names.append(x509.DNSName(value))
    return names


def validity_window(days: int) -> tuple[dt.datetime, dt.datetime]:
    # whole seconds so notAfter - notBefore survives encoding unchanged
    not_before = dt.datetime.now(dt.timezone.utc).replace(microsecond=0)
    return not_before, not_before + dt.timedelta(days=days)
