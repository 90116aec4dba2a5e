"""Operator tool for the broker's environment file.

Three jobs are covered:

1. Build ``AppSettings`` from a ``.env`` file and prove the configured
   ``ENCRYPTION_KEY`` can seal and open a token record, so a broken deployment
   is caught before the service refuses to start.
2. Record and verify a checksum for the file so unexpected edits (a stray
   ``git pull``, a hand edit on the host) are noticed before a restart.
3. Print freshly generated ``JWT_SECRET``/``ENCRYPTION_KEY`` lines for new
   deployments.

Example usages::

    # Validate the file and record the expected checksum.
    python -m scripts.check_env record --env-file /opt/token-broker/.env \
        --hash-file /opt/token-broker/.env.sha256

    # Run later (e.g. from cron/systemd) to alert on drift.
    python -m scripts.check_env verify --env-file /opt/token-broker/.env \
        --hash-file /opt/token-broker/.env.sha256

    # Bootstrap secrets for a new host.
    python -m scripts.check_env keygen >> /opt/token-broker/.env
"""

from __future__ import annotations

import argparse
import hashlib
import secrets
import sys
from pathlib import Path
from typing import Callable

from pydantic import ValidationError

from broker.core.config import AppSettings, _read_env_file, settings_from_values
from broker.core.errors import IntegrityError
from broker.services.token_cipher import TokenCipherService

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_CIPHER_ERROR = 4
EXIT_RUNTIME_ERROR = 5

_PROBE = '{"accessToken":"probe","refreshToken":null,"expiryDate":0}'


def _sha256(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def _load_settings(env_file: Path) -> AppSettings:
    """Build settings from ``env_file`` with its values taking precedence."""
    if not env_file.exists():
        raise FileNotFoundError(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool."
        )
    return settings_from_values(_read_env_file(str(env_file)))


def _probe_cipher(settings: AppSettings) -> None:
    """Seal and reopen a dummy record with the configured key."""
    cipher = TokenCipherService(secret=settings.security.encryption_key)
    if cipher.decrypt(cipher.encrypt(_PROBE)) != _PROBE:
        raise IntegrityError("Cipher probe returned a different payload.")


def _summarize(settings: AppSettings) -> str:
    store = settings.store
    location = store.sqlite_path if store.backend == "sqlite" else store.region_name
    return (
        f"env={settings.environment} store={store.backend}:{location} "
        f"tenant={settings.microsoft.tenant} "
        f"scopes={len(settings.microsoft.scopes)}"
    )


def _record_checksum(env_file: Path, hash_file: Path) -> int:
    checksum = _sha256(env_file)
    hash_file.write_text(f"{checksum}\n", encoding="utf-8")
    print(f"Recorded checksum to {hash_file} ({checksum})")
    return EXIT_OK


def _verify_checksum(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"Checksum baseline {hash_file} is missing. "
            "Run the 'record' command first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = _sha256(env_file)
    if expected != actual:
        print(
            "Environment checksum mismatch!\n"
            f"  expected: {expected}\n"
            f"  actual:   {actual}",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR
    print("Environment checksum OK.")
    return EXIT_OK


def _print_new_secrets() -> int:
    print(f"JWT_SECRET={secrets.token_urlsafe(48)}")
    print(f"ENCRYPTION_KEY={secrets.token_urlsafe(48)}")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate broker settings, detect .env drift and mint secrets."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text, needs_hash in (
        ("record", "Validate settings and store the checksum baseline.", True),
        ("verify", "Validate settings and compare against the baseline.", True),
        ("check", "Validate settings only.", False),
    ):
        subparser = subparsers.add_parser(name, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: ./.env).",
        )
        if needs_hash:
            subparser.add_argument(
                "--hash-file",
                required=True,
                type=Path,
                help="Location of the checksum baseline.",
            )

    subparsers.add_parser("keygen", help="Print new JWT_SECRET and ENCRYPTION_KEY lines.")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "keygen":
        return _print_new_secrets()

    env_file: Path = args.env_file
    try:
        settings = _load_settings(env_file)
        _probe_cipher(settings)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return EXIT_RUNTIME_ERROR
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except IntegrityError as exc:
        print(f"Encryption key self-test failed: {exc.message}", file=sys.stderr)
        return EXIT_CIPHER_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Unexpected error during validation: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    print(f"Settings OK ({_summarize(settings)})")
    handlers: dict[str, Callable[[], int]] = {
        "record": lambda: _record_checksum(env_file, args.hash_file),
        "verify": lambda: _verify_checksum(env_file, args.hash_file),
        "check": lambda: EXIT_OK,
    }
    return handlers[args.command]()


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
