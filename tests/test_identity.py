import pytest

from mtlsca.errors import ValidationError
from mtlsca.identity import (
    CA_SUFFIX,
    ArgumentIdentitySource,
    PromptIdentitySource,
    identity_source,
    validate_identity,
)


def test_username_is_lowercased_and_trimmed():
    ident = validate_identity("  Acme Corp ", "  Alice ")
    assert ident.organization == "Acme Corp"
    assert ident.username == "alice"


@pytest.mark.parametrize("org,user", [("", "alice"), ("Acme", "   "), (None, "alice"), ("Acme", None)])
def test_empty_fields_rejected(org, user):
    with pytest.raises(ValidationError):
        validate_identity(org, user)


@pytest.mark.parametrize("user", ["..", "a/b", "a\\b"])
def test_username_must_be_a_file_name(user):
    with pytest.raises(ValidationError):
        validate_identity("Acme", user)


def test_argument_source_fails_fast():
    with pytest.raises(ValidationError):
        ArgumentIdentitySource("Acme", "").collect()


def test_prompt_source_reprompts_until_non_empty(capsys):
    answers = iter(["", "   ", "Acme Corp", "", "BOB"])
    asked = []

    def ask(prompt):
        asked.append(prompt)
        return next(answers)

    ident = PromptIdentitySource(ask=ask).collect()
    assert ident.organization == "Acme Corp"
    assert ident.username == "bob"
    assert asked.count("Organization Name: ") == 3
    assert asked.count("Username: ") == 2
    assert "required" in capsys.readouterr().out


def test_prompt_source_uses_given_values_without_asking():
    def ask(prompt):
        raise AssertionError("should not prompt")

    ident = PromptIdentitySource("Acme", "Carol", ask=ask).collect()
    assert ident.username == "carol"


def test_identity_source_picks_adapter():
    assert isinstance(identity_source("a", "b", interactive=False), ArgumentIdentitySource)
    assert isinstance(identity_source("a", "b", interactive=True), PromptIdentitySource)


@pytest.mark.parametrize(
    "org,user",
    [
        ("Acme\nCN=evil", "alice"),
        ("Acme\r\n1.O=Other", "alice"),
        ("Acme", "al\tice"),
        ("Acme\x00", "alice"),
    ],
)
def test_control_characters_rejected(org, user):
    with pytest.raises(ValidationError, match="control characters"):
        validate_identity(org, user)


def test_organization_length_limit():
    assert validate_identity("A" * 64, "alice").organization == "A" * 64
    with pytest.raises(ValidationError, match="at most 64"):
        validate_identity("A" * 65, "alice")


def test_username_leaves_room_for_ca_suffix():
    longest = "u" * (64 - len(CA_SUFFIX))
    assert validate_identity("Acme", longest).username == longest
    with pytest.raises(ValidationError, match=f"at most {64 - len(CA_SUFFIX)}"):
        validate_identity("Acme", longest + "u")
