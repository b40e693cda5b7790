"""CLI JSON-lines adapter — streams a query or runs a quick action, prints JSON."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys

from lawdesk import create_api_client, create_quick_actions, create_streaming_client
from lawdesk.core.errors import ApiError
from lawdesk.core.models import AIQueryRequest
from lawdesk.quick_actions.orchestrator import QuickActionRejected


async def run_query(request: AIQueryRequest) -> None:
    async with create_streaming_client() as client:
        async for chunk in client.stream_query(request):
            print(json.dumps(chunk.model_dump(exclude_none=True), default=str), flush=True)


async def run_action(action_name: str, client_id: str, document_ids: list[str]) -> int:
    async with create_api_client() as api:
        orchestrator = create_quick_actions(client_id, lambda: document_ids, api=api)
        try:
            outcome = await orchestrator.execute(action_name)
        except QuickActionRejected as exc:
            print(json.dumps({"rejected": exc.reason.value, "message": exc.message}), flush=True)
            return 2
        except ApiError as exc:
            print(json.dumps({"error": exc.kind.value, "message": exc.user_message}), flush=True)
            return 1
        finally:
            await orchestrator.settle()
        print(json.dumps(outcome.message.model_dump(), default=str), flush=True)
        return 0


def _read_query(argv: list[str]) -> AIQueryRequest:
    if argv:
        return AIQueryRequest(query=" ".join(argv), client_id="cli")
    raw = sys.stdin.read().strip()
    if not raw:
        print(
            "Usage: lawdesk-query <text>  OR  echo '{\"query\":\"...\",\"client_id\":\"...\"}' | lawdesk-query",
            file=sys.stderr,
        )
        sys.exit(1)
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return AIQueryRequest(query=raw, client_id="cli")
    if isinstance(data, dict):
        data.setdefault("client_id", "cli")
        return AIQueryRequest.model_validate(data)
    return AIQueryRequest(query=raw, client_id="cli")


def main() -> None:
    asyncio.run(run_query(_read_query(sys.argv[1:])))


def action_main() -> None:
    parser = argparse.ArgumentParser(prog="lawdesk-action", description="Run a document quick action.")
    parser.add_argument("action", help='e.g. "Extract Dates", "Reply to Letter"')
    parser.add_argument("--client", required=True, help="client id")
    parser.add_argument("--doc", action="append", default=[], dest="documents", help="document id (repeatable)")
    args = parser.parse_args()
    sys.exit(asyncio.run(run_action(args.action, args.client, args.documents)))


if __name__ == "__main__":
    main()
