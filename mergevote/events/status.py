import pydantic

from mergevote.events.base import GithubEvent


class Commit(pydantic.BaseModel):
    sha: str


class StatusEvent(GithubEvent):
    """
    https://docs.github.com/en/webhooks/webhook-events-and-payloads#status
    """

    sha: str
    state: str
    commit: Commit
