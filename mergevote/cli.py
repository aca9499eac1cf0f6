import asyncio
import json
from pathlib import Path
from typing import Optional

import click

from mergevote import app_config as conf
from mergevote.config import V1, load_config
from mergevote.evaluation import evaluate
from mergevote.messages import render
from mergevote.queries import Client
from mergevote.votes import tally_votes


@click.group()
def cli() -> None:
    pass


@cli.command(help="generate the JSON schema for the mergevote.toml")
def gen_conf_json_schema() -> None:
    click.echo(json.dumps(V1.model_json_schema(), indent=2))


@cli.command(help="prints out the bot's view of a mergevote.toml")
@click.argument("config_path", type=click.Path(exists=True))
def validate_config(config_path: str) -> None:
    """
    parse and output the json representation of a config file
    """
    cfg_file = V1.parse_toml(Path(config_path).read_text())
    if not isinstance(cfg_file, V1):
        raise click.ClickException(str(cfg_file))
    click.echo(cfg_file.model_dump_json(indent=2))


async def dry_run(project: str, number: int, merger: Optional[str]) -> str:
    cfg = load_config(conf.CONFIG_PATH)
    if not isinstance(cfg, V1):
        raise click.ClickException(str(cfg))
    async with Client(project=project) as api_client:
        pull_request = await api_client.get_pull_request(number)
        commits = await api_client.get_commits(number)
        comments = await api_client.get_comments(number)
        statuses = await api_client.get_combined_status(pull_request.head_sha)
        bot_login = await api_client.current_bot_identity()
    if not commits:
        raise click.ClickException(f"pull request {number} has no commits")
    tally = tally_votes(
        pr_author=pull_request.author_login,
        last_commit_date=commits[-1].committed_at,
        comments=comments,
        bot_login=bot_login,
        merger=merger,
    )
    outcome = evaluate(
        pull_request=pull_request,
        tally=tally,
        statuses=statuses,
        settings=cfg.settings_for(project),
        merge_command=merger is not None,
    )
    decision = render(outcome)
    lines = [
        f"votes: {dict(tally.votes)!r} (net {tally.net_score})",
        f"outcome: {outcome!r}",
        f"status: {decision.status} {decision.message}",
    ]
    lines += [f"action: {action!r}" for action in decision.actions]
    return "\n".join(lines)


@cli.command(help="show what the bot would do with a pull request")
@click.argument("project")
@click.argument("number", type=int)
@click.option("--merger", help="login of the user asking for the merge")
def evaluate_pr(project: str, number: int, merger: Optional[str]) -> None:
    """
    fetch a pull request and print the decision without acting on it
    """
    click.echo(asyncio.run(dry_run(project, number, merger)))
