from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import structlog
from typing_extensions import Protocol

from mergevote.config import Settings
from mergevote.errors import (
    AuthError,
    HostingApiError,
    NotFoundError,
    NotMergeableError,
    RateLimitError,
)
from mergevote.messages import (
    AddLabel,
    Blocked,
    Decision,
    InsufficientApproval,
    Merge,
    MergePR,
    NoMergeSignal,
    NotClean,
    Outcome,
    PostComment,
    get_merge_message,
    get_not_mergeable_message,
    render,
)
from mergevote.queries import (
    Comment,
    Commit,
    MergeableState,
    PullRequest,
    StatusContext,
)
from mergevote.votes import VoteTally, tally_votes

logger = structlog.get_logger()

INCIDENT_LABEL = "incident"


class HostingClient(Protocol):
    project: str

    async def get_pull_request(self, number: int) -> PullRequest:
        ...

    async def get_commits(self, number: int) -> List[Commit]:
        ...

    async def get_comments(self, number: int) -> List[Comment]:
        ...

    async def get_combined_status(self, sha: str) -> List[StatusContext]:
        ...

    async def list_pull_requests(self) -> List[PullRequest]:
        ...

    async def post_comment(self, number: int, body: str) -> None:
        ...

    async def merge_pull_request(self, number: int, message: str) -> None:
        ...

    async def add_label(self, number: int, label: str) -> None:
        ...

    async def current_bot_identity(self) -> str:
        ...


def evaluate(
    *,
    pull_request: PullRequest,
    tally: VoteTally,
    statuses: Sequence[StatusContext],
    settings: Settings,
    merge_command: bool,
) -> Outcome:
    """
    Decide what to do with a pull request. The checks are ordered by
    priority:

    1. a block vote always wins, even over an incident or a merge command.
    2. unclean CI stops the merge unless an incident was declared.
    3. nothing happens until someone asks for a merge.
    4. the approval threshold applies unless an incident was declared.
    """
    if tally.blocked is not None:
        return Blocked(reason=tally.blocked)

    if (
        pull_request.mergeable_state != MergeableState.CLEAN
        and not tally.incident_override
    ):
        return NotClean(
            state=pull_request.mergeable_state.value, remind=merge_command
        )

    if tally.merger is None:
        return NoMergeSignal()

    if (
        tally.net_score < settings.plus_ones_required
        and not tally.incident_override
    ):
        return InsufficientApproval(
            required=settings.plus_ones_required, have=tally.net_score
        )

    return Merge(
        merger=tally.merger,
        reviewers=tally.reviewers,
        message=get_merge_message(
            pull_request=pull_request,
            reviewers=tally.reviewers,
            merger=tally.merger,
            statuses=statuses,
        ),
        labels=(INCIDENT_LABEL,) if tally.incident_override else (),
    )


def get_error_response(error: HostingApiError) -> Tuple[int, str]:
    if isinstance(error, NotFoundError):
        return 404, "GitHub returned 404, this could be an issue with your access token"
    if isinstance(error, AuthError):
        return (
            401,
            f"Authorization to {error.project} failed, please verify your access token",
        )
    if isinstance(error, RateLimitError):
        return (
            429,
            f"Account for {error.project} has been temporarily locked down due to too many requests",
        )
    return 502, f"GitHub API error for {error.project}: {error.message}"


async def post_comment(api: HostingClient, number: int, body: str) -> Tuple[int, str]:
    log = logger.bind(project=api.project, number=number)
    try:
        await api.post_comment(number, body)
    except HostingApiError as e:
        log.warning("failed to post comment", status_code=e.status_code)
        return get_error_response(e)
    log.info("posted comment")
    return 200, "Commented:\n" + body


async def apply_decision(
    api: HostingClient, number: int, decision: Decision
) -> Tuple[int, str]:
    """
    Perform the actions of a decision in order. Errors from the API are
    turned into a status/message pair; nothing raised by a write escapes.
    """
    log = logger.bind(project=api.project, number=number)
    if not decision.actions:
        return decision.status, decision.message
    for action in decision.actions:
        if isinstance(action, PostComment):
            return await post_comment(api, number, action.text)
        if isinstance(action, AddLabel):
            try:
                await api.add_label(number, action.name)
            except HostingApiError as e:
                log.warning("failed to add label", label=action.name)
                return get_error_response(e)
            continue
        if isinstance(action, MergePR):
            try:
                await api.merge_pull_request(number, action.message)
            except NotMergeableError as e:
                log.info("pull request not mergeable", reason=e.message)
                return await post_comment(
                    api, number, get_not_mergeable_message(e.message)
                )
            except HostingApiError as e:
                log.warning("failed to merge", status_code=e.status_code)
                return get_error_response(e)
            log.info("merged")
            return 200, f"merging {number} {api.project}"
    return decision.status, decision.message


async def maybe_merge(
    api: HostingClient,
    number: int,
    *,
    settings: Settings,
    merge_command: bool,
    merger: Optional[str] = None,
) -> Tuple[int, str]:
    """
    Evaluate a pull request and merge it if the votes allow.

    Everything is fetched fresh on each call. Read failures propagate to the
    caller.

    NOTE: two evaluations of the same pull request (e.g. a merge command and
    a status webhook) are not serialized and can both try to merge. GitHub
    rejects the second merge, which surfaces as a "not mergeable" comment.
    """
    log = logger.bind(project=api.project, number=number, merger=merger)
    pull_request = await api.get_pull_request(number)
    commits = await api.get_commits(number)
    if not commits:
        raise ValueError(f"pull request {number} has no commits")
    comments = await api.get_comments(number)
    statuses = await api.get_combined_status(pull_request.head_sha)
    bot_login = await api.current_bot_identity()

    tally = tally_votes(
        pr_author=pull_request.author_login,
        last_commit_date=commits[-1].committed_at,
        comments=comments,
        bot_login=bot_login,
        merger=merger,
    )
    outcome = evaluate(
        pull_request=pull_request,
        tally=tally,
        statuses=statuses,
        settings=settings,
        merge_command=merge_command,
    )
    log.info(
        "evaluated",
        outcome=type(outcome).__name__,
        net_score=tally.net_score,
        incident_override=tally.incident_override,
    )
    return await apply_decision(api, number, render(outcome))
