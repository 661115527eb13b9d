"""Tests for the command line interface."""

import sys, os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

import io
import json

import pytest

from pii_shield.cli import main
from pii_shield.crypto import decrypt_text, encrypt, export_key, generate_key

SAMPLE = "My email is john.doe@example.com and my SSN is 123-45-6789"


@pytest.fixture
def run(tmp_path, monkeypatch, capsys):
    """Invoke the CLI against a throwaway store; returns (exit_code, stdout)."""
    store_args = ["--db", str(tmp_path / "sessions.db"), "--storage", str(tmp_path / "objects")]

    def _run(*argv, stdin=""):
        monkeypatch.setattr(sys, "stdin", io.StringIO(stdin))
        code = 0
        try:
            main([*store_args, *argv])
        except SystemExit as e:
            code = e.code
        return code, capsys.readouterr().out

    return _run


def test_scan(run):
    code, out = run("scan", stdin=SAMPLE)
    assert code == 0
    found = json.loads(out)
    assert [(m["type"], m["value"], m["start"]) for m in found] == [
        ("email", "john.doe@example.com", 12),
        ("ssn", "123-45-6789", 47),
    ]


def test_submit_process_restore(run, tmp_path):
    doc = tmp_path / "letter.txt"
    doc.write_text(SAMPLE)

    code, out = run("submit", str(doc))
    assert code == 0
    session_id = json.loads(out)["id"]

    code, out = run("process", "--session-id", session_id)
    assert code == 0
    result = json.loads(out)
    assert result["piiCount"] == 2
    key = result["keyBase64"]

    code, out = run("status", "--session-id", session_id)
    assert json.loads(out)["processing_status"] == "completed"

    code, out = run("verify-key", "--session-id", session_id, "--key", key)
    assert code == 0 and json.loads(out) == {"valid": True}

    code, out = run("restore", "--session-id", session_id, "--key", key)
    assert out == SAMPLE

    code, out = run("sessions")
    assert json.loads(out) == [session_id]


def test_verify_wrong_key_exits_nonzero(run, tmp_path):
    doc = tmp_path / "a.txt"
    doc.write_text(SAMPLE)
    _, out = run("submit", str(doc))
    session_id = json.loads(out)["id"]
    run("process", "--session-id", session_id)

    code, out = run("verify-key", "--session-id", session_id, "--key", export_key(generate_key()))
    assert code == 1
    assert json.loads(out) == {"valid": False}


def test_decrypt_and_keygen(run):
    code, out = run("keygen")
    key_b64 = out.strip()
    assert code == 0 and len(key_b64) == 44

    key = generate_key()
    code, out = run("decrypt", "--key", export_key(key), stdin=encrypt(key, "62704") + "\n")
    assert code == 0
    assert out == "62704\n"


def test_encrypt_then_decrypt(run):
    code, out = run("encrypt", stdin="Call Jane at 555-123-4567")
    assert code == 0
    sealed = json.loads(out)
    assert len(sealed["keyBase64"]) == 44

    code, out = run("decrypt", "--key", sealed["keyBase64"], stdin=sealed["encryptedText"])
    assert code == 0
    assert out == "Call Jane at 555-123-4567\n"


def test_encrypt_with_given_key(run):
    key_b64 = export_key(generate_key())
    code, out = run("encrypt", "--key", key_b64, stdin="62704")
    assert code == 0
    sealed = json.loads(out)
    assert sealed["keyBase64"] == key_b64
    assert decrypt_text(key_b64, sealed["encryptedText"]) == "62704"

    code, _ = run("encrypt", "--key", "not-a-key", stdin="62704")
    assert code == 2


def test_errors_exit_with_code_2(run):
    code, _ = run("process", "--session-id", "missing")
    assert code == 2
    code, _ = run("decrypt", "--key", export_key(generate_key()), stdin="QUJD")
    assert code == 2


if __name__ == "__main__":
    import pytest
    pytest.main([__file__, "-v"])
