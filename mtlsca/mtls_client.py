# mtlsca/mtls_client.py
"""
Try an issued PKCS#12 bundle against an mTLS endpoint.

Usage:
  mtlsca-probe https://localhost:4443/ --bundle ~/mtls-certs/alice/alice.p12 \
      --ca server-ca.crt
"""
from __future__ import annotations

import argparse
import logging
import sys
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import requests
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from .errors import MtlsCaError, ValidationError
from .exporter import read_password
from .make_certs import setup_logging

logger = logging.getLogger(__name__)


def load_bundle(path: Path, password: bytes) -> pkcs12.PKCS12KeyAndCertificates:
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise ValidationError(f"cannot read {path}: {exc}") from exc
    try:
        bundle = pkcs12.load_pkcs12(data, password)
    except ValueError as exc:
        raise ValidationError(f"cannot open {path}: wrong password or damaged bundle") from exc
    if bundle.key is None or bundle.cert is None:
        raise ValidationError(f"{path} does not hold a private key and certificate")
    return bundle


@contextmanager
def client_files(bundle: pkcs12.PKCS12KeyAndCertificates) -> Iterator[tuple[str, str]]:
    """Expose the bundle as (cert, key) PEM files for the lifetime of the block."""
    with tempfile.TemporaryDirectory(prefix="mtlsca-probe-") as tmp:
        crt = Path(tmp) / "client.crt"
        key = Path(tmp) / "client.key"
        chain = [bundle.cert, *bundle.additional_certs]
        crt.write_bytes(
            b"".join(c.certificate.public_bytes(serialization.Encoding.PEM) for c in chain)
        )
        key.touch(mode=0o600)
        key.write_bytes(
            bundle.key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
        )
        yield str(crt), str(key)


def call_with(url: str, cert: tuple[str, str], verify: str | bool, timeout: float) -> bool:
    try:
        r = requests.get(url, cert=cert, verify=verify, timeout=timeout)
    except requests.exceptions.SSLError as e:
        print("SSL error:", e)
        return False
    except requests.exceptions.RequestException as e:
        print("Request error:", e)
        return False

    print("Status:", r.status_code)
    print("Body:", r.text.strip())
    return r.ok


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="mtlsca-probe",
        description="Call an HTTPS endpoint presenting a client certificate from a PKCS#12 bundle.",
    )
    ap.add_argument("url")
    ap.add_argument("--bundle", type=Path, required=True, help="<username>.p12 to present")
    ap.add_argument("--ca", help="CA file used to verify the server (default: system store)")
    ap.add_argument("--password-file", type=Path)
    ap.add_argument("--timeout", type=float, default=5.0)
    ap.add_argument("--no-input", action="store_true")
    ap.add_argument("-v", "--verbose", action="store_true")
    return ap


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    interactive = not args.no_input and sys.stdin.isatty()

    try:
        password = read_password(
            interactive=interactive, password_file=args.password_file, repeat=False
        )
        bundle = load_bundle(args.bundle, password)
        logger.info("Presenting %s", bundle.cert.certificate.subject.rfc4514_string())
        with client_files(bundle) as cert:
            ok = call_with(args.url, cert, args.ca or True, args.timeout)
    except MtlsCaError as exc:
        logger.error("%s", exc)
        return 2 if isinstance(exc, ValidationError) else 1
    except (KeyboardInterrupt, EOFError):
        print()
        return 130
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
