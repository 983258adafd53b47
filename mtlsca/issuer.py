# mtlsca/issuer.py
from __future__ import annotations

import logging

from cryptography import x509
from cryptography.x509.oid import NameOID

from .backends import CertificateBackend, CertificateRequest, Credential
from .config import Settings
from .errors import IssuanceError
from .identity import CA_SUFFIX, SubjectIdentity

logger = logging.getLogger(__name__)


def name(common_name: str, organization: str) -> x509.Name:
    return x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization),
    ])


def ca_subject(identity: SubjectIdentity) -> x509.Name:
    return name(identity.username + CA_SUFFIX, identity.organization)


def leaf_subject(identity: SubjectIdentity) -> x509.Name:
    return name(identity.username, identity.organization)


def format_dn(dn: x509.Name) -> str:
    """Render a name in certificate order, e.g. ``CN=alice, O=Acme Corp``."""
    return ", ".join(f"{attr.rfc4514_attribute_name}={attr.value}" for attr in dn)


def build_ca(backend: CertificateBackend, identity: SubjectIdentity, settings: Settings) -> Credential:
    request = CertificateRequest(
        subject=ca_subject(identity),
        key_size=settings.ca_key_size,
        validity_days=settings.validity_days,
        is_ca=True,
    )
    logger.info("Generating %d-bit CA key for %s", request.key_size, format_dn(request.subject))
    ca = backend.self_sign(request)
    logger.info("CA certificate issued (serial %x)", ca.certificate.serial_number)
    return ca


def sign_leaf_cert(
    backend: CertificateBackend,
    ca: Credential,
    identity: SubjectIdentity,
    settings: Settings,
) -> Credential:
    request = CertificateRequest(
        subject=leaf_subject(identity),
        key_size=settings.leaf_key_size,
        validity_days=settings.validity_days,
        is_ca=False,
        san=settings.san,
    )
    logger.info("Generating %d-bit client key for %s", request.key_size, format_dn(request.subject))
    leaf = backend.sign(request, ca)

    if leaf.certificate.issuer != ca.certificate.subject:
        raise IssuanceError(
            f"issuer {format_dn(leaf.certificate.issuer)!r} does not match "
            f"CA subject {format_dn(ca.certificate.subject)!r}"
        )
    logger.info("Client certificate issued (serial %x)", leaf.certificate.serial_number)
    return leaf
