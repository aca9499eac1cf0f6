"""
Interpretation of pull request comments as votes.

Each signal has its own predicate so the patterns can be checked in
isolation. `tally_votes` folds the classified comments into the state the
merge gate works from.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from functools import reduce
from typing import Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

from mergevote.queries import Comment

BLOCK_REASON = "a block vote is present"

MERGE_TOKENS = (":shipit:", ":ship:", "\N{SHIP}", "!merge")
APPROVE_TOKENS = (":+1:", ":thumbsup:", "\N{THUMBS UP SIGN}")
APPROVE_PREFIXES = ("+1", "LGTM")
REJECT_TOKENS = (":-1:", ":thumbsdown:", "\N{THUMBS DOWN SIGN}")
REJECT_PREFIXES = ("-1",)
BLOCK_PREFIXES = (":poop:", ":hankey:", "\N{PILE OF POO}", "-2")


def line_prefix_pattern(prefixes: Tuple[str, ...]) -> re.Pattern[str]:
    """
    Match any of `prefixes` at the start of any line of a comment.
    """
    return re.compile(
        "^(?:" + "|".join(re.escape(prefix) for prefix in prefixes) + ")", re.MULTILINE
    )


APPROVE_PATTERN = line_prefix_pattern(APPROVE_PREFIXES)
REJECT_PATTERN = line_prefix_pattern(REJECT_PREFIXES)
BLOCK_PATTERN = line_prefix_pattern(BLOCK_PREFIXES)

# an issue tracker link to an incident ticket, e.g.
# https://acme.atlassian.net/jira/browse/INCIDENT-123
INCIDENT_PATTERN = re.compile(r"(?i:jira).*INCIDENT")


class Signal(Enum):
    merge_trigger = "merge_trigger"
    approve = "approve"
    reject = "reject"
    block = "block"
    incident_override = "incident_override"


def is_merge_trigger(body: str) -> bool:
    return any(token in body for token in MERGE_TOKENS)


def is_approve(body: str) -> bool:
    return any(token in body for token in APPROVE_TOKENS) or (
        APPROVE_PATTERN.search(body) is not None
    )


def is_reject(body: str) -> bool:
    return any(token in body for token in REJECT_TOKENS) or (
        REJECT_PATTERN.search(body) is not None
    )


def is_block(body: str) -> bool:
    return BLOCK_PATTERN.search(body) is not None


def is_incident_override(body: str) -> bool:
    return INCIDENT_PATTERN.search(body) is not None


SIGNAL_PREDICATES: Tuple[Tuple[Signal, Callable[[str], bool]], ...] = (
    (Signal.merge_trigger, is_merge_trigger),
    (Signal.approve, is_approve),
    (Signal.reject, is_reject),
    (Signal.block, is_block),
    (Signal.incident_override, is_incident_override),
)


def classify(comment: Comment, *, bot_login: str) -> FrozenSet[Signal]:
    """
    Find every signal present in a comment. We never act on our own comments.
    """
    if comment.author_login == bot_login:
        return frozenset()
    return frozenset(
        signal for signal, matches in SIGNAL_PREDICATES if matches(comment.body)
    )


@dataclass(frozen=True)
class VoteTally:
    # actor login -> +1/-1. The pull request author never has an entry.
    votes: Mapping[str, int] = field(default_factory=dict)
    merger: Optional[str] = None
    incident_override: bool = False
    blocked: Optional[str] = None

    @property
    def net_score(self) -> int:
        return sum(self.votes.values())

    @property
    def reviewers(self) -> Tuple[str, ...]:
        return tuple(self.votes)


def apply_comment(
    tally: VoteTally, comment: Comment, *, pr_author: str, bot_login: str
) -> VoteTally:
    """
    Return a new tally with `comment` counted. Once blocked, nothing else
    counts.
    """
    if tally.blocked is not None:
        return tally
    signals = classify(comment, bot_login=bot_login)
    if not signals:
        return tally
    if Signal.block in signals:
        return replace(tally, blocked=BLOCK_REASON)

    actor = comment.author_login
    is_author = actor == pr_author
    votes: Dict[str, int] = dict(tally.votes)
    merger = tally.merger
    if Signal.merge_trigger in signals:
        merger = merger or actor
        if not is_author:
            votes[actor] = 1
    if Signal.approve in signals and not is_author:
        votes[actor] = 1
    if Signal.reject in signals and not is_author:
        votes[actor] = -1
    return replace(
        tally,
        votes=votes,
        merger=merger,
        incident_override=tally.incident_override
        or Signal.incident_override in signals,
    )


def tally_votes(
    *,
    pr_author: str,
    last_commit_date: datetime,
    comments: Iterable[Comment],
    bot_login: str,
    merger: Optional[str] = None,
) -> VoteTally:
    """
    Count the votes cast after the most recent commit.

    Comments from before the last push are ignored so approvals of older code
    don't carry over. `merger` is the login of whoever explicitly asked us to
    merge, if anyone.
    """
    recent_comments = sorted(
        (comment for comment in comments if comment.created_at > last_commit_date),
        key=lambda comment: comment.created_at,
    )
    return reduce(
        lambda tally, comment: apply_comment(
            tally, comment, pr_author=pr_author, bot_login=bot_login
        ),
        recent_comments,
        VoteTally(merger=merger),
    )
