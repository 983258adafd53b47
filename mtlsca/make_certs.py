# mtlsca/make_certs.py
"""
Issue a private CA and an mTLS client certificate for one user.

Usage:
  mtlsca-issue ["Acme Corp"] [alice] [--output-root DIR] [--san 127.0.0.1]

Missing values are prompted for when running on a terminal.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from . import __version__
from .backends import get_backend
from .config import BACKENDS, Pkcs12Profile, Settings
from .errors import MtlsCaError, ValidationError
from .exporter import build_artifacts, manifest, read_password
from .identity import identity_source
from .issuer import build_ca, format_dn, sign_leaf_cert
from .output import commit_directory, confirm, output_dir_for, resolve_output_root

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="mtlsca-issue",
        description="Create a private CA and a client certificate for mutual TLS.",
    )
    ap.add_argument("organization", nargs="?", help="Organization Name (O=)")
    ap.add_argument("username", nargs="?", help="Username (CN=), lowercased")
    ap.add_argument("--output-root", type=Path, help="directory that receives <username>/")
    ap.add_argument("--backend", choices=BACKENDS, help="cryptographic provider")
    ap.add_argument(
        "--pkcs12-profile",
        choices=[p.value for p in Pkcs12Profile],
        help="modern (AES-256, default) or legacy (SHA1/3DES) bundle encryption",
    )
    ap.add_argument(
        "--san",
        action="append",
        default=[],
        metavar="VALUE",
        help="subjectAltName for the client certificate (IP or DNS name), repeatable",
    )
    ap.add_argument("--password-file", type=Path, help="read the PKCS#12 password from this file")
    ap.add_argument("--force", action="store_true", help="replace an existing output directory")
    ap.add_argument("--no-input", action="store_true", help="never prompt; fail on missing input")
    ap.add_argument("-v", "--verbose", action="store_true")
    ap.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return ap


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def run(args: argparse.Namespace, settings: Settings, interactive: bool) -> int:
    identity = identity_source(args.organization, args.username, interactive=interactive).collect()

    out_dir = output_dir_for(resolve_output_root(settings), identity)
    if out_dir.exists() and not args.force:
        if not interactive:
            raise ValidationError(f"{out_dir} already exists (use --force to replace it)")
        if not confirm(f"{out_dir} already exists. Delete it and issue new certificates?"):
            print("Nothing changed.")
            return 0

    backend = get_backend(settings)
    logger.info("Using %s backend", backend.name)

    ca = build_ca(backend, identity, settings)
    leaf = sign_leaf_cert(backend, ca, identity, settings)

    password = read_password(interactive=interactive, password_file=args.password_file)
    files = build_artifacts(backend, identity, ca, leaf, password, settings.pkcs12_profile)

    for path in commit_directory(out_dir, files):
        print(f"[OK] wrote {path}")

    print()
    print(f"CA subject:     {format_dn(ca.certificate.subject)}")
    print(f"Client subject: {format_dn(leaf.certificate.subject)}")
    print(manifest(identity, out_dir, settings.pkcs12_profile))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    interactive = not args.no_input and sys.stdin.isatty()

    try:
        settings = Settings.from_env().override(
            output_root=args.output_root,
            backend=args.backend,
            pkcs12_profile=args.pkcs12_profile,
            san=tuple(args.san) or None,
        )
        return run(args, settings, interactive)
    except ValidationError as exc:
        logger.error("%s", exc)
        return 2
    except MtlsCaError as exc:
        logger.error("Aborted: %s", exc)
        return 1
    except (KeyboardInterrupt, EOFError):
        print()
        logger.error("Interrupted, no certificates were written")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
