# mtlsca/backends/native.py
"""In-process backend built on the ``cryptography`` package.

Private keys never leave memory; the CA key is dropped with the process.
"""
from __future__ import annotations

import logging

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from ..config import Pkcs12Profile
from ..errors import IssuanceError
from .base import (
    CertificateBackend,
    CertificateRequest,
    Credential,
    extended_key_usage,
    general_names,
    key_usage,
    validity_window,
)

logger = logging.getLogger(__name__)

PKCS12_KDF_ROUNDS = 50_000


def gen_rsa_key(key_size: int) -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size)


def _builder(request: CertificateRequest, key: rsa.RSAPrivateKey, issuer: x509.Name) -> x509.CertificateBuilder:
    nb, na = validity_window(request.validity_days)
    builder = (
        x509.CertificateBuilder()
        .subject_name(request.subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(nb)
        .not_valid_after(na)
        .add_extension(x509.BasicConstraints(ca=request.is_ca, path_length=None), critical=True)
        .add_extension(key_usage(request.is_ca), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
    )
    if not request.is_ca:
        builder = builder.add_extension(extended_key_usage(), critical=False)
    if request.san:
        builder = builder.add_extension(
            x509.SubjectAlternativeName(general_names(request.san)),
            critical=False,
        )
    return builder


class CryptographyBackend(CertificateBackend):
    name = "cryptography"

    def self_sign(self, request: CertificateRequest) -> Credential:
        try:
            key = gen_rsa_key(request.key_size)
            cert = _builder(request, key, request.subject).sign(
                private_key=key, algorithm=hashes.SHA256()
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise IssuanceError(f"self-signing failed: {exc}") from exc
        logger.debug("Self-signed %s (serial %x)", cert.subject.rfc4514_string(), cert.serial_number)
        return Credential(certificate=cert, private_key=key)

    def sign(self, request: CertificateRequest, issuer: Credential) -> Credential:
        try:
            key = gen_rsa_key(request.key_size)
            builder = _builder(request, key, issuer.certificate.subject).add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer.private_key.public_key()),
                critical=False,
            )
            cert = builder.sign(private_key=issuer.private_key, algorithm=hashes.SHA256())
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise IssuanceError(f"signing failed: {exc}") from exc
        logger.debug("Signed %s (serial %x)", cert.subject.rfc4514_string(), cert.serial_number)
        return Credential(certificate=cert, private_key=key)

    def export_pkcs12(
        self,
        friendly_name: str,
        leaf: Credential,
        chain: list[x509.Certificate],
        password: bytes,
        profile: Pkcs12Profile,
    ) -> bytes:
        builder = serialization.PrivateFormat.PKCS12.encryption_builder().kdf_rounds(PKCS12_KDF_ROUNDS)
        if profile is Pkcs12Profile.LEGACY:
            builder = builder.key_cert_algorithm(
                pkcs12.PBES.PBESv1SHA1And3KeyTripleDESCBC
            ).hmac_hash(hashes.SHA1())
        else:
            builder = builder.key_cert_algorithm(
                pkcs12.PBES.PBESv2SHA256AndAES256CBC
            ).hmac_hash(hashes.SHA256())

        try:
            return pkcs12.serialize_key_and_certificates(
                name=friendly_name.encode("utf-8"),
                key=leaf.private_key,
                cert=leaf.certificate,
                cas=chain,
                encryption_algorithm=builder.build(password),
            )
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise IssuanceError(f"PKCS#12 export failed: {exc}") from exc
