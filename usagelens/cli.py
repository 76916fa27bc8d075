from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

import uvicorn


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the usagelens API server or normalize saved payloads.")
    subcommands = parser.add_subparsers(dest="command")

    serve = subcommands.add_parser("serve", help="Run the HTTP API (default).")
    serve.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    serve.add_argument("--port", type=int, default=int(os.getenv("PORT", "2456")))

    normalize = subcommands.add_parser("normalize", help="Normalize JSON documents saved to disk.")
    normalize.add_argument("files", nargs="+", type=Path)
    normalize.add_argument("--provider", choices=["claude", "codex"], default=None)
    normalize.add_argument("--plan-label", default=None)

    raw = list(sys.argv[1:] if argv is None else argv)
    if not raw or raw[0] not in ("serve", "normalize", "-h", "--help"):
        raw.insert(0, "serve")
    return parser.parse_args(raw)


def _normalize(args: argparse.Namespace) -> int:
    from usagelens.core.config.settings import get_settings
    from usagelens.core.exceptions import UsageDataUnavailableError
    from usagelens.core.usage.slots import get_profile
    from usagelens.modules.usage.schemas import to_snapshot_response
    from usagelens.modules.usage.service import get_usage_service

    documents = [json.loads(path.read_text(encoding="utf-8")) for path in args.files]
    profile = get_profile(args.provider or get_settings().provider)
    try:
        snapshot = get_usage_service().normalize(documents, profile, plan_label=args.plan_label)
    except UsageDataUnavailableError as exc:
        print(exc.message, file=sys.stderr)
        return 1
    print(to_snapshot_response(snapshot).model_dump_json(by_alias=True, indent=2))
    return 0


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    if args.command == "normalize":
        raise SystemExit(_normalize(args))

    uvicorn.run("usagelens.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
