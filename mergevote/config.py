from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional, Union, cast

import toml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    # number of distinct non-author approvals needed before merging.
    plus_ones_required: int = Field(default=1, ge=1)
    # comment with merge instructions when a pull request is opened.
    post_instructions: bool = False
    # replaces the default instructions text when set.
    instructions: Optional[str] = None


class InvalidVersion(ValueError):
    pass


class V1(BaseModel):
    """
    Configuration file for the bot.

        version = 1

        [default]
        plus_ones_required = 1

        [projects."acme/api"]
        plus_ones_required = 2
        post_instructions = true
    """

    version: int
    default: Settings = Settings()
    # keyed by `owner/repo`. Entries replace `default` entirely.
    projects: Dict[str, Settings] = {}

    @field_validator("version", mode="before")
    @classmethod
    def correct_version(cls, v: int) -> int:
        if v != 1:
            raise InvalidVersion("Version must be `1`")
        return v

    def settings_for(self, project: str) -> Settings:
        return self.projects.get(project, self.default)

    @classmethod
    def parse_toml(
        cls, content: str
    ) -> Union[V1, toml.TomlDecodeError, ValidationError]:
        try:
            return cls.model_validate(cast(Dict[str, Any], toml.loads(content)))
        except (toml.TomlDecodeError, ValidationError) as e:
            return e


def load_config(path: str) -> Union[V1, toml.TomlDecodeError, ValidationError]:
    """
    Load the configuration file at `path`, falling back to defaults when the
    file doesn't exist.
    """
    config_path = Path(path)
    if not config_path.exists():
        return V1(version=1)
    return V1.parse_toml(config_path.read_text())
