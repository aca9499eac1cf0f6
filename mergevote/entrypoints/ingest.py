"""
Accept webhooks from GitHub and evaluate the affected pull request.
"""
from __future__ import annotations

from typing import Any, Dict

import pydantic
import structlog
import uvicorn
from sentry_sdk.integrations.asgi import SentryAsgiMiddleware
from starlette import status
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response
from starlette.routing import Route

from mergevote import app_config as conf
from mergevote.config import V1, load_config
from mergevote.errors import HostingApiError
from mergevote.event_handlers import handle_webhook_event
from mergevote.logging import configure_logging
from mergevote.queries import Client

configure_logging(conf.LOGGING_LEVEL)

logger = structlog.get_logger()

bot_config = load_config(conf.CONFIG_PATH)
if not isinstance(bot_config, V1):
    raise ValueError(f"invalid configuration file {conf.CONFIG_PATH!r}: {bot_config}")


async def root(_: Request) -> Response:
    return PlainTextResponse("OK")


async def github_webhook_event(request: Request) -> Response:
    try:
        github_event = request.headers["X-Github-Event"]
    except KeyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="missing required X-Github-Event header",
        ) from e
    try:
        event: Dict[str, Any] = await request.json()
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="body must be valid JSON"
        ) from e
    if not isinstance(event, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="body must be a JSON object",
        )
    project = event.get("repository", {}).get("full_name")
    log = logger.bind(event_name=github_event, project=project)
    if project is None:
        log.info("event without repository skipped")
        return PlainTextResponse(f"Unhandled event type {github_event}")

    async with Client(project=project) as api_client:
        try:
            status_code, message = await handle_webhook_event(
                api_client, github_event, event, bot_config.settings_for(project)
            )
        except pydantic.ValidationError as e:
            log.info("invalid event payload", errors=e.errors())
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"invalid {github_event} payload",
            ) from e
        except HostingApiError as e:
            log.exception("failed to fetch pull request data")
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail=f"GitHub API error for {e.project}: {e.message}",
            ) from e
    log.info("event handled", status_code=status_code, result=message)
    return PlainTextResponse(message, status_code=status_code)


app = Starlette(
    routes=[
        Route("/", root, methods=["GET"]),
        Route("/api/github/hook", github_webhook_event, methods=["POST"]),
    ]
)
app.add_middleware(SentryAsgiMiddleware)


if __name__ == "__main__":
    uvicorn.run("mergevote.entrypoints.ingest:app", host="0.0.0.0", port=conf.PORT)
