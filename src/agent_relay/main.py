"""CLI entrypoint for agent-relay."""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import rich_click as click

from agent_relay import __version__
from agent_relay.config import ConfigNotFoundError, ConfigValidationError, MissingConfigKeyError
from agent_relay.dispatch.agent_runner import AgentCommandError
from agent_relay.dispatch.controllers import (
    AgentRunCommand,
    ConfigValidateCommand,
    DispatchCliController,
    DispatchCommand,
    GateCommand,
)
from agent_relay.dispatch.jobs import JobError
from agent_relay.sessions.controllers import (
    HealthCheckCommand,
    SessionCliController,
    SessionsListCommand,
    SessionUrlCommand,
)
from agent_relay.sessions.registry import UnknownSessionError

click.rich_click.USE_MARKDOWN = True
DISPATCH_CONTROLLER = DispatchCliController()
SESSION_CONTROLLER = SessionCliController()

_DOMAIN_ERRORS = (
    AgentCommandError,
    ConfigNotFoundError,
    ConfigValidationError,
    JobError,
    MissingConfigKeyError,
    UnknownSessionError,
)


@click.group()
@click.version_option(version=__version__, prog_name="agent-relay")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="YAML config path (default: $AGENT_RELAY_CONFIG or ./config.yml).",
)
@click.option(
    "--log-level",
    default=lambda: os.getenv("AGENT_RELAY_LOG_LEVEL", "INFO"),
    show_default="INFO",
    help="Logging level (DEBUG, INFO, WARNING, ...).",
)
@click.pass_context
def agent_relay(ctx: click.Context, config_path: Path | None, log_level: str) -> None:
    """Dispatch tasks to a persistent browser agent and check session health."""

    logging.basicConfig(
        level=getattr(logging, str(log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    ctx.obj = {"config_path": config_path}


@agent_relay.command("health")
@click.argument("service", required=False)
@click.option(
    "--json",
    "as_json",
    is_flag=True,
    default=False,
    help="Print the {healthy, unhealthy} aggregate as JSON.",
)
@click.pass_context
def health(ctx: click.Context, service: str | None, as_json: bool) -> None:
    """Check that one or all browser sessions are still logged in."""

    with _domain_errors():
        result = SESSION_CONTROLLER.health(
            HealthCheckCommand(
                config_path=ctx.obj["config_path"],
                service=service,
                output_format="json" if as_json else "table",
            ),
        )
    _emit_lines(result.lines)
    if not result.success:
        ctx.exit(1)


@agent_relay.group()
def sessions() -> None:
    """Session registry commands."""


@sessions.command("list")
@click.pass_context
def sessions_list(ctx: click.Context) -> None:
    """List registered sessions with their URL and readiness pattern."""

    with _domain_errors():
        lines = SESSION_CONTROLLER.list_sessions(
            SessionsListCommand(config_path=ctx.obj["config_path"]),
        )
    _emit_lines(lines)


@sessions.command("url")
@click.argument("name")
@click.pass_context
def sessions_url(ctx: click.Context, name: str) -> None:
    """Print the resolved URL of one session."""

    with _domain_errors():
        lines = SESSION_CONTROLLER.url(
            SessionUrlCommand(config_path=ctx.obj["config_path"], name=name),
        )
    _emit_lines(lines)


@agent_relay.command("gate")
@click.pass_context
def gate(ctx: click.Context) -> None:
    """Check whether the environment can take a browser task now."""

    with _domain_errors():
        result = DISPATCH_CONTROLLER.gate(GateCommand(config_path=ctx.obj["config_path"]))
    _emit_lines(result.lines)
    if result.exit_code:
        ctx.exit(result.exit_code)


@agent_relay.command("dispatch")
@click.option("--job", "job_name", required=True, help="Originating job name.")
@click.option("--action", required=True, help="Action text handed to the agent.")
@click.option(
    "--wait/--no-wait",
    default=True,
    show_default=True,
    help="Wait for the agent's result file.",
)
@click.option(
    "--poll-interval",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds between result checks (default from config).",
)
@click.option(
    "--max-wait",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Give up after this many seconds (default from config).",
)
@click.pass_context
def dispatch(  # noqa: PLR0913
    ctx: click.Context,
    job_name: str,
    action: str,
    wait: bool,
    poll_interval: float | None,
    max_wait: float | None,
) -> None:
    """Write a task to the mailbox and wait for the agent to finish it."""

    with _domain_errors():
        result = DISPATCH_CONTROLLER.dispatch(
            DispatchCommand(
                config_path=ctx.obj["config_path"],
                job_name=job_name,
                action=action,
                wait=wait,
                poll_interval=poll_interval,
                max_wait=max_wait,
            ),
        )
    _emit_lines(result.lines)
    if result.exit_code:
        ctx.exit(result.exit_code)


@agent_relay.group()
def agent() -> None:
    """Direct agent commands (no browser session)."""


@agent.command("run")
@click.argument("prompt")
@click.option(
    "--skip-permissions/--no-skip-permissions",
    default=None,
    help="Pass --dangerously-skip-permissions (default from config).",
)
@click.pass_context
def agent_run(ctx: click.Context, prompt: str, skip_permissions: bool | None) -> None:
    """Run the agent once with PROMPT and print its output."""

    with _domain_errors():
        result = DISPATCH_CONTROLLER.run_agent(
            AgentRunCommand(
                config_path=ctx.obj["config_path"],
                prompt=prompt,
                skip_permissions=skip_permissions,
            ),
        )
    _emit_lines(result.lines)


@agent_relay.group()
def config() -> None:
    """Configuration commands."""


@config.command("validate")
@click.pass_context
def config_validate(ctx: click.Context) -> None:
    """Fail listing every missing required config key."""

    with _domain_errors():
        result = DISPATCH_CONTROLLER.validate_config(
            ConfigValidateCommand(config_path=ctx.obj["config_path"]),
        )
    _emit_lines(result.lines)


@contextmanager
def _domain_errors() -> Iterator[None]:
    try:
        yield
    except _DOMAIN_ERRORS as error:
        raise click.ClickException(str(error)) from error
    except (TypeError, ValueError) as error:
        raise click.ClickException(str(error)) from error


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    agent_relay()
