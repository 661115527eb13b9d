"""CLI interface for pii-shield.

Usage:
    # Show what the detector finds (stdin: text, stdout: JSON matches)
    echo 'Mail john@x.com' | python -m pii_shield.cli scan

    # Upload and process a document; prints the one-time key
    python -m pii_shield.cli submit letter.txt
    python -m pii_shield.cli process --session-id <id>

    # Decrypt the processed document with that key
    python -m pii_shield.cli restore --session-id <id> --key <base64>

    # Encrypt text under a fresh key (or --key); prints the key and the blob
    echo 'john@x.com' | python -m pii_shield.cli encrypt

    # Decrypt a single blob (stdin)
    echo '<blob>' | python -m pii_shield.cli decrypt --key <base64>

Sessions live in SQLite and objects on disk so state survives across calls.
"""

from __future__ import annotations
import argparse
import json
import mimetypes
import sys
from pathlib import Path

from .config import create_processor, load_config, load_from_yaml
from .crypto import decrypt_text, encrypt, export_key, generate_key, import_key
from .errors import PIIShieldError
from .log import configure_logging
from .patterns import scan_regex
from .pipeline import DocumentProcessor
from .server import DEFAULT_PORT, serve


def _build_processor(args: argparse.Namespace) -> DocumentProcessor:
    data = load_from_yaml(args.config) if args.config else load_config({})
    data["sessions_backend"] = "sqlite"
    data["storage_backend"] = "filesystem"
    if args.db:
        data["sessions_path"] = args.db
    if args.storage:
        data["storage_root"] = args.storage
    return create_processor(data)


def _dump(data: object) -> None:
    json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def cmd_scan(args: argparse.Namespace) -> None:
    """Detect PII in plain text on stdin."""
    text = sys.stdin.read()
    _dump([
        {
            "type": m.kind.value,
            "value": m.value,
            "start": m.start,
            "end": m.end,
            "confidence": m.confidence,
        }
        for m in scan_regex(text)
    ])


def cmd_submit(args: argparse.Namespace) -> None:
    """Upload a file and create its session."""
    path = Path(args.file)
    mime_type = args.mime_type or mimetypes.guess_type(path.name)[0] or "text/plain"
    processor = _build_processor(args)
    session = processor.submit(path.name, path.read_bytes(), mime_type)
    _dump(session.to_dict())


def cmd_process(args: argparse.Namespace) -> None:
    """Run the pipeline for a session and print the one-time key."""
    result = _build_processor(args).process(args.session_id)
    _dump(result.to_dict())
    if result.key_base64:
        sys.stderr.write("Store this key now: it is not kept anywhere.\n")


def cmd_status(args: argparse.Namespace) -> None:
    _dump(_build_processor(args).status(args.session_id).to_dict())


def cmd_verify_key(args: argparse.Namespace) -> None:
    valid = _build_processor(args).verify_key(args.session_id, args.key)
    _dump({"valid": valid})
    if not valid:
        sys.exit(1)


def cmd_restore(args: argparse.Namespace) -> None:
    """Write the decrypted document to stdout."""
    sys.stdout.write(_build_processor(args).restore(args.session_id, args.key))


def cmd_encrypt(args: argparse.Namespace) -> None:
    """Encrypt stdin under --key, or under a fresh key that is printed along."""
    key_base64 = args.key or export_key(generate_key())
    blob = encrypt(import_key(key_base64), sys.stdin.read())
    _dump({"keyBase64": key_base64, "encryptedText": blob})


def cmd_decrypt(args: argparse.Namespace) -> None:
    """Decrypt one blob from stdin."""
    sys.stdout.write(decrypt_text(args.key, sys.stdin.read().strip()))
    sys.stdout.write("\n")


def cmd_keygen(args: argparse.Namespace) -> None:
    sys.stdout.write(export_key(generate_key()) + "\n")


def cmd_sessions(args: argparse.Namespace) -> None:
    """List all sessions."""
    _dump(_build_processor(args).sessions.list_sessions())


def cmd_serve(args: argparse.Namespace) -> None:
    serve(port=args.port, host=args.host, processor=_build_processor(args))


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="pii_shield",
        description="Detect and encrypt PII in documents",
    )
    parser.add_argument("--config", default="", help="YAML config file")
    parser.add_argument("--db", default=None, help="SQLite session store path")
    parser.add_argument("--storage", default=None, help="Object storage directory")
    parser.add_argument("--log-level", default=None, help="Logging level")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("scan", help="Detect PII in plain text (stdin)")

    p = sub.add_parser("submit", help="Upload a document")
    p.add_argument("file")
    p.add_argument("--mime-type", default=None)

    for name, help_text in (("process", "Process a session"), ("status", "Show a session")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--session-id", required=True)

    for name, help_text in (("verify-key", "Check a key against a session"),
                            ("restore", "Decrypt a processed document")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--session-id", required=True)
        p.add_argument("--key", required=True)

    p = sub.add_parser("encrypt", help="Encrypt text (stdin) into one blob")
    p.add_argument("--key", default=None, help="Base64 key; generated when omitted")

    p = sub.add_parser("decrypt", help="Decrypt one blob (stdin)")
    p.add_argument("--key", required=True)

    sub.add_parser("keygen", help="Print a fresh base64 key")
    sub.add_parser("sessions", help="List sessions")

    p = sub.add_parser("serve", help="Run the HTTP sidecar")
    p.add_argument("--host", default="127.0.0.1")
    p.add_argument("--port", type=int, default=DEFAULT_PORT)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    cmds = {
        "scan": cmd_scan,
        "submit": cmd_submit,
        "process": cmd_process,
        "status": cmd_status,
        "verify-key": cmd_verify_key,
        "restore": cmd_restore,
        "encrypt": cmd_encrypt,
        "decrypt": cmd_decrypt,
        "keygen": cmd_keygen,
        "sessions": cmd_sessions,
        "serve": cmd_serve,
    }
    try:
        cmds[args.command](args)
    except PIIShieldError as e:
        sys.stderr.write(f"error: {e}\n")
        sys.exit(2)


if __name__ == "__main__":
    main()
