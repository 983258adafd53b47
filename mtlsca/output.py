# mtlsca/output.py
from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Mapping

from .config import Settings, default_output_root
from .errors import ExportError
from .identity import SubjectIdentity

logger = logging.getLogger(__name__)

YES = ("yes", "y")
NO = ("no", "n")


def resolve_output_root(settings: Settings) -> Path:
    """
    Pick the directory under which per-user folders are created.

    Order: explicit ``output_root``, then the first existing entry of
    ``search_roots``, then ``~/mtls-certs``.
    """
    if settings.output_root is not None:
        return settings.output_root
    for candidate in settings.search_roots:
        if candidate.is_dir():
            logger.debug("Using search root %s", candidate)
            return candidate
    return default_output_root()


def output_dir_for(root: Path, identity: SubjectIdentity) -> Path:
    return root / identity.username


def confirm(question: str, ask: Callable[[str], str] | None = None) -> bool:
    ask = ask or input
    while True:
        answer = ask(f"{question} [yes/no]: ").strip().lower()
        if answer in YES:
            return True
        if answer in NO:
            return False
        print("Please answer 'yes' or 'no'.")


def commit_directory(target: Path, files: Mapping[str, bytes]) -> list[Path]:
    """
    Write ``files`` into ``target`` as one step.

    Everything is written to a private staging directory beside ``target``
    first. An existing ``target`` is moved aside, replaced by the staging
    directory and removed last; on failure it is put back.
    """
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{target.name}-", dir=target.parent))
    except OSError as exc:
        raise ExportError(f"cannot create output directory under {target.parent}: {exc}") from exc

    previous = staging.with_name(staging.name + ".old")
    moved = False
    try:
        for name, data in files.items():
            (staging / name).write_bytes(data)
            logger.debug("Staged %s (%d bytes)", name, len(data))
        if target.exists():
            target.replace(previous)
            moved = True
        staging.replace(target)
    except OSError as exc:
        if moved:
            previous.replace(target)
        shutil.rmtree(staging, ignore_errors=True)
        raise ExportError(f"cannot write {target}: {exc}") from exc

    if moved:
        try:
            shutil.rmtree(previous)
        except OSError as exc:
            logger.warning("Could not remove previous output %s: %s", previous, exc)
        else:
            logger.info("Removed previous output %s", target)

    return [target / name for name in files]
