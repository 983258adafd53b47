# mtlsca/exporter.py
from __future__ import annotations

import getpass
import logging
import os
from pathlib import Path
from typing import Callable

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from .backends import CertificateBackend, Credential
from .config import PASSWORD_ENV, Pkcs12Profile
from .errors import ValidationError
from .identity import SubjectIdentity

logger = logging.getLogger(__name__)


# --- Helpers ---

def pem_cert(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.PEM)


def der_cert(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.DER)


def file_names(identity: SubjectIdentity) -> dict[str, str]:
    u = identity.username
    return {
        "ca": f"{u}-ca.crt",
        "cer": f"{u}.cer",
        "pem": f"{u}.pem",
        "p12": f"{u}.p12",
    }


def read_password(
    *,
    interactive: bool,
    password_file: Path | None = None,
    environ: dict[str, str] | None = None,
    prompt: Callable[[str], str] | None = None,
    repeat: bool = True,
) -> bytes:
    """
    Obtain the PKCS#12 passphrase.

    Sources in order: ``password_file`` (first line), the
    ``MTLSCA_P12_PASSWORD`` environment variable, then a hidden prompt
    asked twice when ``repeat`` is set. The passphrase is never written anywhere.
    """
    env = os.environ if environ is None else environ
    prompt = prompt or getpass.getpass

    if password_file is not None:
        try:
            lines = password_file.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise ValidationError(f"cannot read password file {password_file}: {exc}") from exc
        password = lines[0] if lines else ""
        if not password:
            raise ValidationError(f"password file {password_file} is empty")
        return password.encode("utf-8")

    if env.get(PASSWORD_ENV):
        return env[PASSWORD_ENV].encode("utf-8")

    if not interactive:
        raise ValidationError(
            f"no PKCS#12 password: use --password-file or set {PASSWORD_ENV}"
        )

    while True:
        first = prompt("PKCS#12 password: ")
        if not first:
            print("[!] Password must not be empty.")
            continue
        if repeat and prompt("Repeat password: ") != first:
            print("[!] Passwords do not match.")
            continue
        return first.encode("utf-8")


def build_artifacts(
    backend: CertificateBackend,
    identity: SubjectIdentity,
    ca: Credential,
    leaf: Credential,
    password: bytes,
    profile: Pkcs12Profile,
) -> dict[str, bytes]:
    """Render every output file in memory, keyed by file name."""
    names = file_names(identity)
    p12 = backend.export_pkcs12(
        friendly_name=identity.username,
        leaf=leaf,
        chain=[ca.certificate],
        password=password,
        profile=profile,
    )
    logger.info("PKCS#12 bundle built (%s profile)", profile.value)
    return {
        names["ca"]: pem_cert(ca.certificate),
        names["cer"]: der_cert(leaf.certificate),
        names["pem"]: pem_cert(leaf.certificate),
        names["p12"]: p12,
    }


def manifest(identity: SubjectIdentity, out_dir: Path, profile: Pkcs12Profile) -> str:
    names = file_names(identity)
    lines = [
        f"Files created in {out_dir}:",
        f"  {names['ca']:<24} CA certificate (PEM)",
        f"  {names['cer']:<24} client certificate (DER)",
        f"  {names['pem']:<24} client certificate (PEM)",
        f"  {names['p12']:<24} client key + certificate chain (PKCS#12, {profile.value})",
        "",
        "Next steps:",
        f"  1. On the server, trust {names['ca']} as the client CA",
        f"     (e.g. nginx: ssl_client_certificate {names['ca']}; ssl_verify_client on;).",
        f"  2. Import {names['p12']} into the client's certificate store or browser",
        "     using the password you just entered.",
        f"  3. Test with: curl --cert-type P12 --cert {names['p12']}:<password> https://<host>/",
        f"     or: mtlsca-probe https://<host>/ --bundle {out_dir / names['p12']}",
    ]
    return "\n".join(lines)
