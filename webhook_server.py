#!/usr/bin/env python3
"""
Webhook server - exposes the actions over HTTP.

Routes:
    POST /converse        direct conversational turn (JSON)
    POST /slack/events    Slack Events API (JSON)
    POST /slack/commands  Slack slash commands (form-encoded)
    POST /slack/register  bot registration payload (JSON)
    GET  /slack/oauth     OAuth redirect carrying ?code=
    GET  /health
"""

import argparse
import logging
import os
from pathlib import Path
from typing import Any, Dict

import uvicorn
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from actions import converse, slackapp_command, slackapp_event, slackapp_register
from actions.config import configure_logging

logger = logging.getLogger(__name__)

app = FastAPI(title="Slack Conversation Bridge", version="1.0.0")


def to_http(result: Dict[str, Any]) -> JSONResponse:
    """Turn an action result into an HTTP response."""
    return JSONResponse(content=result.get("body") or {}, status_code=result["statusCode"])


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/converse")
async def converse_route(request: Request) -> JSONResponse:
    return to_http(await converse.main(await _json_body(request)))


@app.post("/slack/events")
async def slack_events_route(request: Request) -> JSONResponse:
    return to_http(await slackapp_event.main(await _json_body(request)))


@app.post("/slack/commands")
async def slack_commands_route(request: Request) -> JSONResponse:
    form = await request.form()
    return to_http(await slackapp_command.main(dict(form)))


@app.post("/slack/register")
async def slack_register_route(request: Request) -> JSONResponse:
    return to_http(await slackapp_register.main(await _json_body(request)))


@app.get("/slack/oauth")
async def slack_oauth_route(code: str = Query(...)) -> JSONResponse:
    return to_http(await slackapp_register.main({"code": code}))


def load_secrets(secrets_file: Path) -> Dict[str, str]:
    """Fill unset environment variables from a KEY=value file.

    Returns:
        The variables taken from the file
    """
    if not secrets_file.is_file():
        logger.info(f"No secrets file at {secrets_file}, using the environment only")
        return {}

    loaded = {}
    for line in secrets_file.read_text().splitlines():
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#") or key in os.environ:
            continue
        loaded[key] = os.environ[key] = value.strip().strip("\"'")

    logger.info(f"Loaded {len(loaded)} settings from {secrets_file}")
    return loaded


def main():
    parser = argparse.ArgumentParser(description="Run the Slack conversation webhooks")
    parser.add_argument("--host", default=os.getenv("HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8080")))
    parser.add_argument(
        "--secrets",
        default=str(Path(__file__).parent / "secrets.env"),
        help="KEY=value file loaded into the environment",
    )
    args = parser.parse_args()

    configure_logging()
    load_secrets(Path(args.secrets))
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
