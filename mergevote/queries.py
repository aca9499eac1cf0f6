from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx as http
import pydantic
import structlog
from pydantic import BaseModel

import mergevote.app_config as conf
from mergevote.errors import (
    AuthError,
    HostingApiError,
    NotFoundError,
    NotMergeableError,
    RateLimitError,
)

logger = structlog.get_logger()

# GitHub returns at most 250 commits for a pull request, so with 100 per page
# this comfortably covers every list endpoint we call.
PAGE_SIZE = 100
PAGE_LIMIT = 20


class MergeableState(Enum):
    """
    https://docs.github.com/en/graphql/reference/enums#mergestatestatus
    """

    # The head ref is out of date.
    BEHIND = "behind"
    # The merge is blocked.
    BLOCKED = "blocked"
    # Mergeable and passing commit status.
    CLEAN = "clean"
    # The merge commit cannot be cleanly created.
    DIRTY = "dirty"
    # The merge is blocked due to the pull request being a draft.
    DRAFT = "draft"
    # Mergeable with passing commit status and pre-receive hooks.
    HAS_HOOKS = "has_hooks"
    # The state cannot currently be determined.
    UNKNOWN = "unknown"
    # Mergeable with non-passing commit status.
    UNSTABLE = "unstable"


class PullRequest(BaseModel):
    number: int
    author_login: str
    mergeable_state: MergeableState
    head_sha: str
    title: str
    body: str
    url: str


class Commit(BaseModel):
    sha: str
    committed_at: datetime


class Comment(BaseModel):
    author_login: str
    body: str
    created_at: datetime


class StatusContext(BaseModel):
    state: str
    description: Optional[str] = None
    target_url: Optional[str] = None


class UserSchema(BaseModel):
    login: str


class RefSchema(BaseModel):
    sha: str


class PullRequestSchema(BaseModel):
    """
    https://docs.github.com/en/rest/pulls/pulls#get-a-pull-request
    """

    number: int
    user: UserSchema
    # only computed for single pull request requests. GitHub returns null
    # while it calculates the value in the background.
    mergeable_state: Optional[str] = None
    head: RefSchema
    title: str
    body: Optional[str] = None
    html_url: str


class GitActorSchema(BaseModel):
    date: datetime


class CommitDetailSchema(BaseModel):
    committer: GitActorSchema


class CommitSchema(BaseModel):
    sha: str
    commit: CommitDetailSchema


class CommentSchema(BaseModel):
    user: UserSchema
    body: Optional[str] = None
    created_at: datetime


class CombinedStatusSchema(BaseModel):
    state: str
    statuses: List[StatusContext]


def get_mergeable_state(raw_state: Optional[str]) -> MergeableState:
    try:
        return MergeableState(raw_state)
    except ValueError:
        return MergeableState.UNKNOWN


def to_pull_request(pr: PullRequestSchema) -> PullRequest:
    return PullRequest(
        number=pr.number,
        author_login=pr.user.login,
        mergeable_state=get_mergeable_state(pr.mergeable_state),
        head_sha=pr.head.sha,
        title=pr.title,
        body=pr.body or "",
        url=pr.html_url,
    )


def to_commit(commit: CommitSchema) -> Commit:
    return Commit(sha=commit.sha, committed_at=commit.commit.committer.date)


def to_comment(comment: CommentSchema) -> Comment:
    return Comment(
        author_login=comment.user.login,
        body=comment.body or "",
        created_at=comment.created_at,
    )


def is_rate_limited(res: http.Response) -> bool:
    if res.status_code == 429:
        return True
    return res.status_code == 403 and res.headers.get("x-ratelimit-remaining") == "0"


def get_error_message(res: http.Response) -> str:
    try:
        body = res.json()
    except ValueError:
        return res.text
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return str(body["message"])
    return res.text


class Client:
    """
    REST client for a single GitHub repository (`owner/repo`).

    Every non-2xx response raises a `HostingApiError` subclass. Nothing is
    retried here.
    """

    def __init__(
        self,
        *,
        project: str,
        token: Optional[str] = None,
        transport: Optional[http.AsyncBaseTransport] = None,
    ):
        self.project = project
        self.owner, _, self.repo = project.partition("/")
        # NOTE: We must call `await session.aclose()` when we are finished with
        # our session. We implement an async context manager to handle this.
        self.session = http.AsyncClient(
            base_url=conf.GITHUB_V3_API_ROOT, timeout=30, transport=transport
        )
        self.session.headers["Accept"] = "application/vnd.github+json"
        self.session.headers["Authorization"] = f"token {token or conf.GITHUB_TOKEN}"
        if (
            conf.GITHUB_API_HEADER_NAME is not None
            and conf.GITHUB_API_HEADER_VALUE is not None
        ):
            self.session.headers[
                conf.GITHUB_API_HEADER_NAME
            ] = conf.GITHUB_API_HEADER_VALUE
        self.log = logger.bind(project=project)
        self._bot_login: Optional[str] = conf.GITHUB_BOT_LOGIN

    async def __aenter__(self) -> Client:
        return self

    async def __aexit__(self, exc_type: Any, exc_value: Any, traceback: Any) -> None:
        await self.session.aclose()

    def _repo_path(self, path: str) -> str:
        return f"/repos/{self.owner}/{self.repo}{path}"

    def _raise_for_status(self, res: http.Response) -> None:
        if res.is_success:
            return
        message = get_error_message(res)
        self.log.warning("github api request error", res=res)
        if res.status_code == 401:
            raise AuthError(self.project, res.status_code, message)
        if is_rate_limited(res):
            raise RateLimitError(self.project, res.status_code, message)
        if res.status_code == 404:
            raise NotFoundError(self.project, res.status_code, message)
        raise HostingApiError(self.project, res.status_code, message)

    async def _get_all_pages(
        self, path: str, params: Optional[Dict[str, str]] = None
    ) -> List[Any]:
        log = self.log.bind(path=path)
        params = dict(params or {}, per_page=str(PAGE_SIZE))
        results: List[Any] = []
        for current_page in range(1, PAGE_LIMIT + 1):
            params["page"] = str(current_page)
            res = await self.session.get(path, params=params)
            self._raise_for_status(res)
            page = res.json()
            results += page
            if len(page) < PAGE_SIZE:
                break
        else:
            log.info("hit pagination limit")
        return results

    async def get_pull_request(self, number: int) -> PullRequest:
        """
        https://docs.github.com/en/rest/pulls/pulls#get-a-pull-request
        """
        res = await self.session.get(self._repo_path(f"/pulls/{number}"))
        self._raise_for_status(res)
        return to_pull_request(PullRequestSchema.model_validate(res.json()))

    async def get_commits(self, number: int) -> List[Commit]:
        """
        https://docs.github.com/en/rest/pulls/pulls#list-commits-on-a-pull-request

        Commits are returned in chronological order.
        """
        raw = await self._get_all_pages(self._repo_path(f"/pulls/{number}/commits"))
        return [to_commit(CommitSchema.model_validate(commit)) for commit in raw]

    async def get_comments(self, number: int) -> List[Comment]:
        """
        https://docs.github.com/en/rest/issues/comments#list-issue-comments
        """
        raw = await self._get_all_pages(
            self._repo_path(f"/issues/{number}/comments")
        )
        return [to_comment(CommentSchema.model_validate(comment)) for comment in raw]

    async def get_combined_status(self, sha: str) -> List[StatusContext]:
        """
        https://docs.github.com/en/rest/commits/statuses#get-the-combined-status-for-a-specific-reference
        """
        res = await self.session.get(self._repo_path(f"/commits/{sha}/status"))
        self._raise_for_status(res)
        return CombinedStatusSchema.model_validate(res.json()).statuses

    async def list_pull_requests(self) -> List[PullRequest]:
        """
        https://docs.github.com/en/rest/pulls/pulls#list-pull-requests
        """
        raw = await self._get_all_pages(self._repo_path("/pulls"), dict(state="open"))
        return [to_pull_request(PullRequestSchema.model_validate(pr)) for pr in raw]

    async def post_comment(self, number: int, body: str) -> None:
        """
        https://docs.github.com/en/rest/issues/comments#create-an-issue-comment
        """
        res = await self.session.post(
            self._repo_path(f"/issues/{number}/comments"), json=dict(body=body)
        )
        self._raise_for_status(res)

    async def merge_pull_request(self, number: int, message: str) -> None:
        """
        https://docs.github.com/en/rest/pulls/pulls#merge-a-pull-request
        """
        res = await self.session.put(
            self._repo_path(f"/pulls/{number}/merge"),
            json=dict(commit_message=message),
        )
        # 405: not mergeable, 409: head sha changed underneath us.
        if res.status_code in {405, 409}:
            raise NotMergeableError(
                self.project, res.status_code, get_error_message(res)
            )
        self._raise_for_status(res)

    async def add_label(self, number: int, label: str) -> None:
        """
        https://docs.github.com/en/rest/issues/labels#add-labels-to-an-issue
        """
        res = await self.session.post(
            self._repo_path(f"/issues/{number}/labels"), json=dict(labels=[label])
        )
        self._raise_for_status(res)

    async def current_bot_identity(self) -> str:
        """
        https://docs.github.com/en/rest/users/users#get-the-authenticated-user
        """
        if self._bot_login is not None:
            return self._bot_login
        res = await self.session.get("/user")
        self._raise_for_status(res)
        try:
            self._bot_login = UserSchema.model_validate(res.json()).login
        except pydantic.ValidationError:
            self.log.exception("unexpected /user response", res=res)
            raise
        return self._bot_login
