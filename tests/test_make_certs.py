import argparse
import datetime as dt

import pytest
from cryptography import x509
from cryptography.hazmat.primitives.serialization import pkcs12

from mtlsca import make_certs
from mtlsca.config import Settings
from mtlsca.issuer import format_dn


def _issue(tmp_path, *extra):
    return make_certs.main(
        ["Acme Corp", "Alice", "--output-root", str(tmp_path), "--no-input", *extra]
    )


def _snapshot(directory):
    return {p.name: p.read_bytes() for p in directory.iterdir()}


def test_end_to_end(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("MTLSCA_P12_PASSWORD", "pw")
    assert _issue(tmp_path, "--san", "127.0.0.1") == 0

    out = tmp_path / "alice"
    assert sorted(p.name for p in out.iterdir()) == ["alice-ca.crt", "alice.cer", "alice.p12", "alice.pem"]

    ca = x509.load_pem_x509_certificate((out / "alice-ca.crt").read_bytes())
    leaf = x509.load_der_x509_certificate((out / "alice.cer").read_bytes())
    assert format_dn(ca.subject) == "CN=alice-privateCA, O=Acme Corp"
    assert format_dn(leaf.subject) == "CN=alice, O=Acme Corp"
    assert format_dn(leaf.issuer) == "CN=alice-privateCA, O=Acme Corp"
    for cert in (ca, leaf):
        assert cert.not_valid_after_utc - cert.not_valid_before_utc == dt.timedelta(days=365)

    key, cert, extra = pkcs12.load_key_and_certificates((out / "alice.p12").read_bytes(), b"pw")
    assert cert == leaf
    assert extra == [ca]

    stdout = capsys.readouterr().out
    assert "[OK] wrote" in stdout
    assert "Next steps" in stdout


def test_existing_dir_without_force_fails_non_interactive(tmp_path, monkeypatch):
    monkeypatch.setenv("MTLSCA_P12_PASSWORD", "pw")
    out = tmp_path / "alice"
    out.mkdir()
    (out / "alice.p12").write_bytes(b"keep me")

    assert _issue(tmp_path) == 2
    assert _snapshot(out) == {"alice.p12": b"keep me"}


def test_force_replaces_existing_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("MTLSCA_P12_PASSWORD", "pw")
    out = tmp_path / "alice"
    out.mkdir()
    (out / "stale.txt").write_text("old")

    assert _issue(tmp_path, "--force") == 0
    assert "stale.txt" not in _snapshot(out)
    assert "alice.p12" in _snapshot(out)


def _args(**kw):
    base = dict(organization="Acme Corp", username="Alice", force=False, password_file=None)
    base.update(kw)
    return argparse.Namespace(**base)


def test_declined_overwrite_is_clean_exit(tmp_path, monkeypatch, capsys):
    out = tmp_path / "alice"
    out.mkdir()
    (out / "alice.p12").write_bytes(b"previous run")
    before = _snapshot(out)

    monkeypatch.setattr("builtins.input", lambda _: "no")

    def no_backend(_):
        raise AssertionError("nothing may be issued after declining")

    monkeypatch.setattr(make_certs, "get_backend", no_backend)

    rc = make_certs.run(_args(), Settings(output_root=tmp_path), interactive=True)
    assert rc == 0
    assert _snapshot(out) == before
    assert [p.name for p in tmp_path.iterdir()] == ["alice"]
    assert "Nothing changed" in capsys.readouterr().out


def test_interactive_run_prompts_for_everything(tmp_path, monkeypatch):
    answers = iter(["", "Acme Corp", "BOB"])
    monkeypatch.setattr("builtins.input", lambda _: next(answers))
    monkeypatch.setattr("getpass.getpass", lambda _: "pw")

    rc = make_certs.run(
        _args(organization=None, username=None),
        Settings(output_root=tmp_path),
        interactive=True,
    )
    assert rc == 0
    assert (tmp_path / "bob" / "bob.p12").exists()


def test_missing_identity_non_interactive(tmp_path, capsys):
    rc = make_certs.main(["--output-root", str(tmp_path), "--no-input"])
    assert rc == 2
    assert list(tmp_path.iterdir()) == []


def test_issuance_failure_writes_nothing(tmp_path, monkeypatch):
    monkeypatch.setenv("MTLSCA_P12_PASSWORD", "pw")
    monkeypatch.setenv("MTLSCA_OPENSSL", "/nonexistent/openssl")
    assert _issue(tmp_path, "--backend", "openssl") == 1
    assert not (tmp_path / "alice").exists()


def test_bad_config_exit_code(tmp_path):
    with pytest.raises(SystemExit):
        make_certs.main(["Acme", "alice", "--backend", "windows"])


@pytest.mark.parametrize(
    "org,user",
    [("A" * 70, "alice"), ("Acme\nCN=evil", "alice"), ("Acme", "u" * 60)],
)
def test_unusable_names_exit_before_issuing(tmp_path, monkeypatch, org, user):
    monkeypatch.setenv("MTLSCA_P12_PASSWORD", "pw")
    rc = make_certs.main([org, user, "--output-root", str(tmp_path), "--no-input"])
    assert rc == 2
    assert list(tmp_path.iterdir()) == []
