from __future__ import annotations


class HostingApiError(Exception):
    """
    A non-2xx response from the code hosting API.
    """

    def __init__(self, project: str, status_code: int, message: str) -> None:
        super().__init__(message)
        self.project = project
        self.status_code = status_code
        self.message = message


class AuthError(HostingApiError):
    pass


class NotFoundError(HostingApiError):
    pass


class RateLimitError(HostingApiError):
    pass


class NotMergeableError(HostingApiError):
    """
    The hosting service refused to merge the pull request (405/409).

    This is an expected outcome, reported back to the pull request as a
    comment rather than treated as a failure.
    """
