import pydantic


class Repository(pydantic.BaseModel):
    full_name: str


class User(pydantic.BaseModel):
    login: str


class GithubEvent(pydantic.BaseModel):
    repository: Repository
