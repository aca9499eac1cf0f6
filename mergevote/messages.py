from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence, Union

from typing_extensions import assert_never

from mergevote.queries import PullRequest, StatusContext

BLOCKED_COMMENT = "Commit cannot be merged so long as a -2 comment appears in the PR."

NOT_CLEAN_REASSURANCE = """\
I will try to merge this for you when the builds turn green
If your build fails or becomes stuck for some reason, just say 'rebuild'
If you have an incident and want to skip the tests or the peer review, please post the link to the jira ticket."""


@dataclass(frozen=True)
class Merge:
    merger: str
    reviewers: Sequence[str]
    message: str
    labels: Sequence[str] = ()


@dataclass(frozen=True)
class Blocked:
    reason: str


@dataclass(frozen=True)
class InsufficientApproval:
    required: int
    have: int


@dataclass(frozen=True)
class NotClean:
    state: str
    # we only remind when a human asked for the merge. Status webhooks arrive
    # for every CI update and would flood the pull request.
    remind: bool


@dataclass(frozen=True)
class NoMergeSignal:
    pass


Outcome = Union[Merge, Blocked, InsufficientApproval, NotClean, NoMergeSignal]


@dataclass(frozen=True)
class PostComment:
    text: str


@dataclass(frozen=True)
class AddLabel:
    name: str


@dataclass(frozen=True)
class MergePR:
    message: str


Action = Union[PostComment, AddLabel, MergePR]


@dataclass(frozen=True)
class Decision:
    status: int
    message: str
    actions: List[Action] = field(default_factory=list)


def get_instructions(plus_ones_required: int) -> str:
    return (
        f"To merge at least {plus_ones_required} person other than the submitter "
        "needs to write a comment containing only _+1_ or :+1:. "
        "Then write _!merge_ or :shipit: to trigger merging."
    )


def get_not_clean_message(state: str) -> str:
    return f"Merge state is not clean. Current state: {state}\n"


def get_insufficient_approval_message(*, required: int, have: int) -> str:
    return f"Not enough plus ones. {required} required, and only have {have}"


def get_not_mergeable_message(reason: str) -> str:
    return f"Pull request not mergeable: {reason}"


def format_status(status: StatusContext) -> str:
    return ", ".join(
        [status.state, status.description or "", status.target_url or ""]
    )


def get_merge_message(
    *,
    pull_request: PullRequest,
    reviewers: Sequence[str],
    merger: str,
    statuses: Sequence[StatusContext],
) -> str:
    """
    Build the merge commit body. The pull request body is kept verbatim after
    the summary block.
    """
    tests = "\n ".join(format_status(status) for status in statuses)
    return f"""\
Title: {pull_request.title}
Opened by: {pull_request.author_login}
Reviewers: {", ".join(reviewers)}
Deployer: {merger}
URL: {pull_request.url}
Tests: {tests}

{pull_request.body}
"""


def render(outcome: Outcome) -> Decision:
    """
    Map a gate outcome to the HTTP status, the summary message and the
    actions to perform against the pull request.
    """
    if isinstance(outcome, Blocked):
        return Decision(
            status=200,
            message=f"blocked: {outcome.reason}",
            actions=[PostComment(BLOCKED_COMMENT)],
        )
    if isinstance(outcome, NotClean):
        msg = get_not_clean_message(outcome.state)
        if not outcome.remind:
            return Decision(status=200, message=msg)
        return Decision(
            status=200,
            message=msg,
            actions=[PostComment(msg + NOT_CLEAN_REASSURANCE)],
        )
    if isinstance(outcome, NoMergeSignal):
        return Decision(status=200, message="No merge comment found")
    if isinstance(outcome, InsufficientApproval):
        msg = get_insufficient_approval_message(
            required=outcome.required, have=outcome.have
        )
        return Decision(status=200, message=msg, actions=[PostComment(msg)])
    if isinstance(outcome, Merge):
        actions: List[Action] = [AddLabel(label) for label in outcome.labels]
        actions.append(MergePR(outcome.message))
        return Decision(status=200, message="merging", actions=actions)
    assert_never(outcome)
