from mergevote.events.base import GithubEvent


class PullRequestEvent(GithubEvent):
    """
    https://docs.github.com/en/webhooks/webhook-events-and-payloads#pull_request
    """

    action: str
    number: int
