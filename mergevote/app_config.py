from typing import Any, Optional, Type, TypeVar, overload

from starlette.config import Config, undefined

from mergevote.logging import get_logging_level

T = TypeVar("T")


class TypedConfig(Config):
    @overload  # type: ignore [override]
    def __call__(self, key: str, cast: Type[T], default: T = ...) -> T:
        ...

    @overload
    def __call__(self, key: str, cast: Type[str] = ..., default: str = ...) -> str:
        ...

    @overload
    def __call__(
        self, key: str, cast: Type[str] = ..., default: None = ...
    ) -> Optional[str]:
        ...

    def __call__(
        self, key: str, cast: Optional[type] = None, default: Any = undefined
    ) -> Any:
        return super().get(key, cast=cast, default=default)


config = TypedConfig(".env")

PORT = config("PORT", cast=int, default=8000)
LOGGING_LEVEL = get_logging_level(config("LOGGING_LEVEL", default="INFO"))
# personal access token (or installation token) used for every API call.
GITHUB_TOKEN = config("GITHUB_TOKEN")
# when set we skip the `GET /user` lookup for our own login. GitHub App
# installation tokens can't call `/user`, so these deployments must set it.
GITHUB_BOT_LOGIN = config("GITHUB_BOT_LOGIN", default=None)

# For GitHub Enterprise, the v3 API root has the form:
# http(s)://[hostname]/api/v3, instead of https://api.github.com.
GITHUB_V3_API_ROOT = config("GITHUB_V3_API_ROOT", default="https://api.github.com")

# An extra header to send with API requests.
GITHUB_API_HEADER_NAME = config("GITHUB_API_HEADER_NAME", default=None)
GITHUB_API_HEADER_VALUE = config("GITHUB_API_HEADER_VALUE", default=None)

# path of the toml file holding per-project vote settings.
CONFIG_PATH = config("MERGEVOTE_CONFIG_PATH", default="mergevote.toml")
