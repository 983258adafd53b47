# mtlsca/errors.py
from __future__ import annotations


class MtlsCaError(Exception):
    """Base class for every error the issuer reports to the user."""


class ValidationError(MtlsCaError):
    """Input is missing or unusable (empty name, bad password, ...)."""


class ConfigError(MtlsCaError):
    pass


class IssuanceError(MtlsCaError):
    """Key generation, signing or PKCS#12 packaging failed."""


class ExportError(MtlsCaError):
    """The output directory could not be created or written."""
