from __future__ import annotations

from typing import Any, Dict, Tuple

import structlog

from mergevote.config import Settings
from mergevote.evaluation import HostingClient, maybe_merge, post_comment
from mergevote.events import IssueCommentEvent, PullRequestEvent, StatusEvent
from mergevote.messages import get_instructions
from mergevote.votes import is_merge_trigger

logger = structlog.get_logger()


async def issue_comment(
    api: HostingClient, event: IssueCommentEvent, settings: Settings
) -> Tuple[int, str]:
    """
    Evaluate a pull request when someone asks us to merge it.
    """
    if event.action != "created":
        return 200, "not a new comment, skipping"
    if event.issue.pull_request is None:
        return 200, "not a pull request comment, skipping"
    if event.sender.login == await api.current_bot_identity():
        return 200, "Skipping own comment"
    if not is_merge_trigger(event.comment.body):
        return 200, "Not a merge comment"
    return await maybe_merge(
        api,
        event.issue.number,
        settings=settings,
        merge_command=True,
        merger=event.sender.login,
    )


async def status_event(
    api: HostingClient, event: StatusEvent, settings: Settings
) -> Tuple[int, str]:
    """
    Retry the merge of the pull request whose head commit just went green.
    """
    if event.state != "success":
        return 200, "Merge state not clean"
    commit_sha = event.commit.sha
    for pull_request in await api.list_pull_requests():
        if pull_request.head_sha == commit_sha:
            return await maybe_merge(
                api, pull_request.number, settings=settings, merge_command=False
            )
    return 200, f"Found no pull requests matching {commit_sha}"


async def pr_event(
    api: HostingClient, event: PullRequestEvent, settings: Settings
) -> Tuple[int, str]:
    """
    Explain how to get a newly opened pull request merged.
    """
    if event.action != "opened" or not settings.post_instructions:
        return 200, "Not posting instructions"
    instructions = settings.instructions or get_instructions(
        settings.plus_ones_required
    )
    return await post_comment(api, event.number, instructions)


async def handle_webhook_event(
    api: HostingClient, event_name: str, payload: Dict[str, Any], settings: Settings
) -> Tuple[int, str]:
    """
    Route a webhook payload to its handler.

    Raises `pydantic.ValidationError` when the payload doesn't match the
    event schema.
    """
    log = logger.bind(event_name=event_name, project=api.project)
    log.info("handling event")
    if event_name == "issue_comment":
        return await issue_comment(
            api, IssueCommentEvent.model_validate(payload), settings
        )
    if event_name == "status":
        return await status_event(api, StatusEvent.model_validate(payload), settings)
    if event_name == "pull_request":
        return await pr_event(api, PullRequestEvent.model_validate(payload), settings)
    if event_name == "ping":
        return 200, "pong"
    return 200, f"Unhandled event type {event_name}"
