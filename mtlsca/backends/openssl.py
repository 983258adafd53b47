# mtlsca/backends/openssl.py
"""
Backend that delegates to the ``openssl`` command line tool.

Key material lives only inside a private temporary directory for the
duration of one call; results are read back into memory and the
directory is removed before returning.
"""
from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import unicodedata
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from ..config import Pkcs12Profile
from ..errors import IssuanceError
from .base import CertificateBackend, CertificateRequest, Credential, general_names

logger = logging.getLogger(__name__)

_PASSWORD_VAR = "MTLSCA_PKCS12_PASSOUT"

_PKCS12_ARGS = {
    Pkcs12Profile.MODERN: ["-keypbe", "AES-256-CBC", "-certpbe", "AES-256-CBC", "-macalg", "sha256"],
    Pkcs12Profile.LEGACY: ["-keypbe", "PBE-SHA1-3DES", "-certpbe", "PBE-SHA1-3DES", "-macalg", "sha1"],
}

_SHORT_NAMES = {
    NameOID.COMMON_NAME: "CN",
    NameOID.ORGANIZATION_NAME: "O",
    NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
    NameOID.COUNTRY_NAME: "C",
    NameOID.STATE_OR_PROVINCE_NAME: "ST",
    NameOID.LOCALITY_NAME: "L",
}


def _escape(value: str) -> str:
    # openssl.cnf treats these as comment, variable and quoting characters
    for ch in ("\\", "$", "#", '"', "'"):
        value = value.replace(ch, "\\" + ch)
    return value


def _san_value(values: tuple[str, ...]) -> str:
    parts = []
    for name in general_names(values):
        if isinstance(name, x509.IPAddress):
            parts.append(f"IP:{name.value}")
        else:
            parts.append(f"DNS:{name.value}")
    return ", ".join(parts)


def render_config(request: CertificateRequest) -> str:
    """Build an openssl.cnf holding the subject and the extension section."""
    lines = [
        "[req]",
        "distinguished_name = dn",
        "prompt = no",
        "string_mask = utf8only",
        "utf8 = yes",
        "",
        "[dn]",
    ]
    for index, attr in enumerate(request.subject):
        short = _SHORT_NAMES.get(attr.oid)
        if short is None:
            raise IssuanceError(f"openssl backend cannot encode name attribute {attr.oid.dotted_string}")
        if any(unicodedata.category(c) == "Cc" for c in attr.value):
            raise IssuanceError(f"openssl backend cannot encode control characters in {short}")
        # "N.CN" keeps repeated attribute types distinct
        lines.append(f"{index}.{short} = {_escape(attr.value)}")

    lines += ["", "[ext]"]
    if request.is_ca:
        lines += [
            "basicConstraints = critical, CA:TRUE",
            "keyUsage = critical, keyCertSign, cRLSign, digitalSignature",
            "subjectKeyIdentifier = hash",
        ]
    else:
        lines += [
            "basicConstraints = critical, CA:FALSE",
            "keyUsage = critical, digitalSignature, keyEncipherment",
            "extendedKeyUsage = clientAuth",
            "subjectKeyIdentifier = hash",
            "authorityKeyIdentifier = keyid",
        ]
    if request.san:
        lines.append(f"subjectAltName = {_san_value(request.san)}")
    return "\n".join(lines) + "\n"


_PROGRESS_CHARS = ".+*- "
STDERR_TAIL_LINES = 5


def error_detail(stderr: str) -> str:
    """Last few meaningful stderr lines, without key generation progress dots."""
    lines = [line.lstrip(_PROGRESS_CHARS).strip() for line in stderr.splitlines()]
    lines = [line for line in lines if line]
    return "; ".join(lines[-STDERR_TAIL_LINES:])


def _write_private(path: Path, data: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)


def _pem_key(key) -> bytes:
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


class OpenSSLBackend(CertificateBackend):
    name = "openssl"

    def __init__(self, executable: str = "openssl"):
        self.executable = executable

    def _run(self, *args: str, cwd: Path, env: dict[str, str] | None = None) -> None:
        cmd = [self.executable, *args]
        logger.debug("Running %s", " ".join(cmd))
        try:
            subprocess.run(
                cmd,
                cwd=cwd,
                env=env,
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as exc:
            raise IssuanceError(f"openssl executable not found: {self.executable}") from exc
        except subprocess.CalledProcessError as exc:
            detail = error_detail(exc.stderr or "") or f"exit status {exc.returncode}"
            raise IssuanceError(f"openssl {args[0]} failed: {detail}") from exc

    def _read_credential(self, workdir: Path, stem: str) -> Credential:
        cert = x509.load_pem_x509_certificate((workdir / f"{stem}.crt").read_bytes())
        key = serialization.load_pem_private_key((workdir / f"{stem}.key").read_bytes(), password=None)
        return Credential(certificate=cert, private_key=key)

    def self_sign(self, request: CertificateRequest) -> Credential:
        with tempfile.TemporaryDirectory(prefix="mtlsca-") as tmp:
            workdir = Path(tmp)
            (workdir / "req.cnf").write_text(render_config(request), encoding="utf-8")
            self._run(
                "req", "-x509", "-new",
                "-newkey", f"rsa:{request.key_size}", "-nodes",
                "-keyout", "self.key", "-out", "self.crt",
                "-days", str(request.validity_days), "-sha256",
                "-config", "req.cnf", "-extensions", "ext",
                cwd=workdir,
            )
            return self._read_credential(workdir, "self")

    def sign(self, request: CertificateRequest, issuer: Credential) -> Credential:
        with tempfile.TemporaryDirectory(prefix="mtlsca-") as tmp:
            workdir = Path(tmp)
            (workdir / "req.cnf").write_text(render_config(request), encoding="utf-8")
            _write_private(workdir / "issuer.key", _pem_key(issuer.private_key))
            (workdir / "issuer.crt").write_bytes(
                issuer.certificate.public_bytes(serialization.Encoding.PEM)
            )
            self._run(
                "req", "-new",
                "-newkey", f"rsa:{request.key_size}", "-nodes",
                "-keyout", "leaf.key", "-out", "leaf.csr",
                "-sha256", "-config", "req.cnf",
                cwd=workdir,
            )
            self._run(
                "x509", "-req", "-in", "leaf.csr",
                "-CA", "issuer.crt", "-CAkey", "issuer.key",
                "-set_serial", hex(x509.random_serial_number()),
                "-days", str(request.validity_days), "-sha256",
                "-extfile", "req.cnf", "-extensions", "ext",
                "-out", "leaf.crt",
                cwd=workdir,
            )
            return self._read_credential(workdir, "leaf")

    def export_pkcs12(
        self,
        friendly_name: str,
        leaf: Credential,
        chain: list[x509.Certificate],
        password: bytes,
        profile: Pkcs12Profile,
    ) -> bytes:
        with tempfile.TemporaryDirectory(prefix="mtlsca-") as tmp:
            workdir = Path(tmp)
            _write_private(workdir / "leaf.key", _pem_key(leaf.private_key))
            (workdir / "leaf.crt").write_bytes(leaf.certificate.public_bytes(serialization.Encoding.PEM))
            (workdir / "chain.crt").write_bytes(
                b"".join(c.public_bytes(serialization.Encoding.PEM) for c in chain)
            )
            env = dict(os.environ)
            env[_PASSWORD_VAR] = password.decode("utf-8")
            args = [
                "pkcs12", "-export",
                "-inkey", "leaf.key", "-in", "leaf.crt",
                "-name", friendly_name,
                "-out", "bundle.p12",
                "-passout", f"env:{_PASSWORD_VAR}",
                *_PKCS12_ARGS[profile],
            ]
            if chain:
                args[4:4] = ["-certfile", "chain.crt"]
            self._run(*args, cwd=workdir, env=env)
            return (workdir / "bundle.p12").read_bytes()
