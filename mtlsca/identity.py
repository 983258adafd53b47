# mtlsca/identity.py
from __future__ import annotations

import sys
import unicodedata
from dataclasses import dataclass
from typing import Callable

from .errors import ValidationError

Ask = Callable[[str], str]

CA_SUFFIX = "-privateCA"
# RFC 5280 ub-common-name and ub-organization-name
MAX_NAME_LENGTH = 64


@dataclass(frozen=True)
class SubjectIdentity:
    organization: str
    username: str


def _check_characters(label: str, value: str) -> None:
    if any(unicodedata.category(c) == "Cc" for c in value):
        raise ValidationError(f"{label} must not contain control characters")


def _clean_organization(value: str | None) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError("Organization name is required")
    _check_characters("Organization name", value)
    if len(value) > MAX_NAME_LENGTH:
        raise ValidationError(f"Organization name must be at most {MAX_NAME_LENGTH} characters")
    return value


def _clean_username(value: str | None) -> str:
    value = (value or "").strip().lower()
    if not value:
        raise ValidationError("Username is required")
    _check_characters("Username", value)
    if len(value + CA_SUFFIX) > MAX_NAME_LENGTH:
        raise ValidationError(
            f"Username must be at most {MAX_NAME_LENGTH - len(CA_SUFFIX)} characters"
        )
    # the username names the output directory and every exported file
    if value in (".", "..") or "/" in value or "\\" in value:
        raise ValidationError(f"Username {value!r} cannot be used as a file name")
    return value


def validate_identity(organization: str | None, username: str | None) -> SubjectIdentity:
    return SubjectIdentity(
        organization=_clean_organization(organization),
        username=_clean_username(username),
    )


class ArgumentIdentitySource:
    """Non-interactive source: values come from arguments or config only."""

    def __init__(self, organization: str | None, username: str | None):
        self.organization = organization
        self.username = username

    def collect(self) -> SubjectIdentity:
        return validate_identity(self.organization, self.username)


class PromptIdentitySource:
    """
    Interactive source. Values given up front are used when valid; anything
    missing or empty is asked for again until the user supplies it.
    """

    def __init__(
        self,
        organization: str | None = None,
        username: str | None = None,
        ask: Ask | None = None,
        out=None,
    ):
        self.organization = organization
        self.username = username
        self.ask = ask or input
        self.out = out or sys.stdout

    def _prompt(self, label: str, initial: str | None, clean: Callable[[str | None], str]) -> str:
        value = initial
        while True:
            try:
                return clean(value)
            except ValidationError as exc:
                if value is not None:
                    print(f"[!] {exc}", file=self.out)
            value = self.ask(f"{label}: ")

    def collect(self) -> SubjectIdentity:
        organization = self._prompt("Organization Name", self.organization, _clean_organization)
        username = self._prompt("Username", self.username, _clean_username)
        return SubjectIdentity(organization=organization, username=username)


def identity_source(
    organization: str | None,
    username: str | None,
    *,
    interactive: bool,
    ask: Ask | None = None,
):
    if interactive:
        return PromptIdentitySource(organization, username, ask=ask)
    return ArgumentIdentitySource(organization, username)
