from typing import Any, Dict, Optional

import pydantic

from mergevote.events.base import GithubEvent, User


class Comment(pydantic.BaseModel):
    body: str
    user: User


class Issue(pydantic.BaseModel):
    number: int
    # only present when the issue is a pull request.
    pull_request: Optional[Dict[str, Any]] = None


class IssueCommentEvent(GithubEvent):
    """
    https://docs.github.com/en/webhooks/webhook-events-and-payloads#issue_comment
    """

    action: str
    issue: Issue
    comment: Comment
    sender: User
