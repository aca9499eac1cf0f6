import os

import pytest


@pytest.hookimpl(tryfirst=True)  # type: ignore[misc]
def pytest_load_initial_conftests(
    args: object, early_config: object, parser: object
) -> None:
    os.environ["GITHUB_TOKEN"] = "ghp_mergevoteTestTokenDoNotUse"
    os.environ["GITHUB_BOT_LOGIN"] = "mergevote-bot"
    os.environ["GITHUB_V3_API_ROOT"] = "https://github.test/api/v3"
    os.environ["MERGEVOTE_CONFIG_PATH"] = "does-not-exist/mergevote.toml"
