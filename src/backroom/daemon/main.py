"""Operator entrypoint: serve the webhook app and manage the Telegram webhook."""

from __future__ import annotations

import argparse
import json
from typing import Any

from src.backroom.runtime.service import get_backroom_service


def run_server(*, host: str = "127.0.0.1", port: int = 8000) -> int:
    try:
        import uvicorn
    except Exception as exc:  # pragma: no cover - dependency error guard
        raise RuntimeError("uvicorn is required to serve the app") from exc

    uvicorn.run("app.main:app", host=host, port=port, reload=False)
    return 0


def _print_json(payload: dict[str, Any]) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Backroom CMS bot operator commands.")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the webhook/API app with uvicorn.")
    serve.add_argument("--host", default="127.0.0.1", help="Bind host.")
    serve.add_argument("--port", type=int, default=8000, help="Bind port.")

    set_hook = sub.add_parser("set-webhook", help="Point Telegram at this deployment.")
    set_hook.add_argument("url", help="Public HTTPS URL of the /webhook endpoint.")
    set_hook.add_argument("--drop-pending", action="store_true", help="Discard updates queued at Telegram.")

    delete_hook = sub.add_parser("delete-webhook", help="Stop Telegram from calling the webhook.")
    delete_hook.add_argument("--drop-pending", action="store_true", help="Discard updates queued at Telegram.")

    sub.add_parser("webhook-info", help="Show Telegram's view of the webhook.")

    args = parser.parse_args(argv)
    if args.command == "serve":
        return run_server(host=args.host, port=args.port)

    service = get_backroom_service()
    if args.command == "set-webhook":
        _print_json(service.set_webhook(args.url, drop_pending_updates=args.drop_pending))
    elif args.command == "delete-webhook":
        _print_json(service.delete_webhook(drop_pending_updates=args.drop_pending))
    else:
        _print_json(service.webhook_info())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
