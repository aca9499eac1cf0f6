from mergevote.events.issue_comment import IssueCommentEvent  # noqa: F401
from mergevote.events.pull_request import PullRequestEvent  # noqa: F401
from mergevote.events.status import StatusEvent  # noqa: F401
