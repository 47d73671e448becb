# src/pkg_tokens/admin/cli.py

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any, Sequence

from .env import settings_from_env
from ..domain.entities import CallerIdentity, TokenView
from ..integrations.common.lifecycle_factory import create_token_lifecycle

# Token id recorded for operator actions that are not backed by a bearer token.
ADMIN_TOKEN_ID = "admin-cli"


def _parse_claim(raw: str) -> tuple[str, Any]:
    key, sep, value = raw.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"claims must look like key=value, got {raw!r}")
    try:
        return key, json.loads(value)
    except ValueError:
        return key, value


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Operate on the token store configured by TOKENS_* environment variables",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level for the run (default: WARNING).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    issue = sub.add_parser("issue", help="Issue a new token for an owner.")
    issue.add_argument("--owner", required=True, help="Owner (sub) the token is issued for.")
    issue.add_argument("--name", required=True, help="Label of the token.")
    issue.add_argument("--minutes", type=int, required=True, help="Lifetime in minutes.")
    issue.add_argument(
        "--claim",
        "-c",
        action="append",
        type=_parse_claim,
        default=[],
        help="Custom claim as key=value; JSON values are decoded. Repeatable.",
    )
    issue.add_argument(
        "--audience",
        "-a",
        action="append",
        default=[],
        help="Audience (aud) of the token. Repeatable; defaults to TOKENS_DEFAULT_AUDIENCE.",
    )

    listing = sub.add_parser("list", help="List the tokens of an owner.")
    listing.add_argument("--owner", required=True)

    revoke = sub.add_parser("revoke", help="Revoke a token on behalf of its owner.")
    revoke.add_argument("--token-id", required=True)
    revoke.add_argument("--owner", required=True)
    revoke.add_argument("--reason")

    sub.add_parser("sweep", help="Mark stored tokens past their expiry as expired.")

    return parser.parse_args(args=argv)


def _view(view: TokenView) -> dict[str, Any]:
    return {
        "token_id": view.token_id,
        "jwt_name": view.jwt_name,
        "status": view.status.value,
        "issued_at": view.issued_at.isoformat(),
        "expires_at": view.expires_at.isoformat(),
        "revoked_at": view.revoked_at.isoformat() if view.revoked_at else None,
        "revocation_reason": view.revocation_reason,
    }


def _run(args: argparse.Namespace) -> dict[str, Any]:
    settings = settings_from_env()
    # the memory backend would not outlive this process
    if settings.store_backend != "sqlite":
        raise RuntimeError(
            "The admin CLI needs a persistent store: set TOKENS_STORE_BACKEND=sqlite "
            f"and TOKENS_SQLITE_PATH (backend is {settings.store_backend!r})"
        )
    lifecycle = create_token_lifecycle(settings)

    if args.command == "issue":
        issued = lifecycle.generate(
            args.owner, args.name, dict(args.claim), args.minutes, args.audience or None,
        )
        return {
            "token_id": issued.token_id,
            "token": issued.token,
            "expires_at": issued.expires_at.isoformat(),
        }

    if args.command == "list":
        caller = CallerIdentity(owner_id=args.owner, token_id=ADMIN_TOKEN_ID)
        return {"tokens": [_view(v) for v in lifecycle.list_tokens(caller)]}

    if args.command == "revoke":
        caller = CallerIdentity(owner_id=args.owner, token_id=ADMIN_TOKEN_ID)
        revoked = lifecycle.revoke(args.token_id, caller, args.reason)
        return {
            "token_id": revoked.token_id,
            "status": revoked.status.value,
            "newly_revoked": revoked.newly_revoked,
        }

    return {"expired": lifecycle.sweep_expired()}


def main(argv: Sequence[str] | None = None) -> None:
    args = _parse_args(argv)
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        summary = _run(args)
        json.dump({"ok": True, **summary}, sys.stdout, indent=2)
        sys.stdout.write("\n")
    except Exception as exc:  # noqa: BLE001
        json.dump({"ok": False, "error": str(exc)}, sys.stdout, indent=2)
        sys.stdout.write("\n")
        raise


if __name__ == "__main__":
    main()
