from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from mergevote.queries import (
    Comment,
    Commit,
    MergeableState,
    PullRequest,
    StatusContext,
)

BOT_LOGIN = "mergevote-bot"
PROJECT = "acme/api"

# every comment in the tests is dated relative to the last push.
LAST_COMMIT_DATE = datetime(2021, 3, 4, 12, 0, tzinfo=timezone.utc)


def create_pull_request(
    *, mergeable_state: MergeableState = MergeableState.CLEAN, **kwargs: Any
) -> PullRequest:
    return PullRequest(
        **{
            **dict(
                number=42,
                author_login="alice",
                mergeable_state=mergeable_state,
                head_sha="8d728d017cac4f5ba37533debe65730abe65730a",
                title="Add rate limiting to the search endpoint",
                body="Closes #12\n\nAdds a token bucket in front of search.",
                url="https://github.com/acme/api/pull/42",
            ),
            **kwargs,
        }
    )


def create_commit(*, committed_at: datetime = LAST_COMMIT_DATE) -> Commit:
    return Commit(
        sha="8d728d017cac4f5ba37533debe65730abe65730a", committed_at=committed_at
    )


def create_comment(
    body: str, *, author: str = "bob", minutes_after_push: int = 5
) -> Comment:
    return Comment(
        author_login=author,
        body=body,
        created_at=LAST_COMMIT_DATE + timedelta(minutes=minutes_after_push),
    )


def create_status(state: str = "success") -> StatusContext:
    return StatusContext(
        state=state,
        description="Your tests passed on CircleCI!",
        target_url="https://circleci.com/gh/acme/api/1234",
    )


class BaseMockFunc:
    calls: List[Mapping[str, Any]]

    def __init__(self) -> None:
        self.calls = []

    def log_call(self, args: Dict[str, Any]) -> None:
        self.calls.append(args)

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def called(self) -> bool:
        return self.call_count > 0

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: call_count={self.call_count!r} calls={self.calls!r}>"


class MockPostComment(BaseMockFunc):
    raises: Optional[Union[Type[Exception], Exception]] = None

    async def __call__(self, number: int, body: str) -> None:
        self.log_call(dict(number=number, body=body))
        if self.raises is not None:
            raise self.raises


class MockMergePullRequest(BaseMockFunc):
    raises: Optional[Union[Type[Exception], Exception]] = None

    async def __call__(self, number: int, message: str) -> None:
        self.log_call(dict(number=number, message=message))
        if self.raises is not None:
            raise self.raises


class MockAddLabel(BaseMockFunc):
    raises: Optional[Union[Type[Exception], Exception]] = None

    async def __call__(self, number: int, label: str) -> None:
        self.log_call(dict(number=number, label=label))
        if self.raises is not None:
            raise self.raises


class MockClient:
    """
    In-memory stand-in for `mergevote.queries.Client`.
    """

    def __init__(
        self,
        *,
        pull_request: Optional[PullRequest] = None,
        commits: Optional[List[Commit]] = None,
        comments: Optional[List[Comment]] = None,
        statuses: Optional[List[StatusContext]] = None,
        open_pull_requests: Optional[List[PullRequest]] = None,
    ) -> None:
        self.project = PROJECT
        self.pull_request = pull_request or create_pull_request()
        self.commits = commits if commits is not None else [create_commit()]
        self.comments = comments or []
        self.statuses = statuses if statuses is not None else [create_status()]
        self.open_pull_requests = open_pull_requests or []
        self.post_comment = MockPostComment()
        self.merge_pull_request = MockMergePullRequest()
        self.add_label = MockAddLabel()

    async def get_pull_request(self, number: int) -> PullRequest:
        return self.pull_request

    async def get_commits(self, number: int) -> List[Commit]:
        return self.commits

    async def get_comments(self, number: int) -> List[Comment]:
        return self.comments

    async def get_combined_status(self, sha: str) -> List[StatusContext]:
        return self.statuses

    async def list_pull_requests(self) -> List[PullRequest]:
        return self.open_pull_requests

    async def current_bot_identity(self) -> str:
        return BOT_LOGIN
