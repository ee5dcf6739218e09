"""
Operator CLI for a running workload runner.

Sends lifecycle commands to the runner's control endpoint and shows the
state of the managed workload.
"""

import json
import sys

import click

from .client import get_control_url, get_state, send_command


def _send(ctx: click.Context, command: str) -> None:
    try:
        ack = send_command(command, ctx.obj["url"])
    except RuntimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"✓ {ack.get('command', command)} accepted")


@click.group()
@click.option(
    "--url",
    default=None,
    help="Control endpoint URL (default: RUNNER_CONTROL_URL env or "
    "http://127.0.0.1:8765)",
)
@click.pass_context
def cli(ctx: click.Context, url: str | None):
    """Runner Control - Send commands to a workload runner."""
    ctx.ensure_object(dict)
    ctx.obj["url"] = get_control_url(url)


@cli.command()
@click.pass_context
def start(ctx: click.Context):
    """Converge the workload to Running."""
    _send(ctx, "Start")


@cli.command()
@click.pass_context
def stop(ctx: click.Context):
    """Converge the workload to Exited."""
    _send(ctx, "Stop")


@cli.command()
@click.pass_context
def remove(ctx: click.Context):
    """Remove the workload's container."""
    _send(ctx, "Remove")


@cli.command("quit")
@click.pass_context
def quit_runner(ctx: click.Context):
    """Stop the runner, leaving the container as it is."""
    _send(ctx, "Quit")


@cli.command()
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def status(ctx: click.Context, json_output: bool):
    """Show the workload's current and target state."""
    try:
        state = get_state(ctx.obj["url"])
    except RuntimeError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(state, indent=2))
        return

    click.echo(f"Workload: {state['identity']}")
    click.echo(f"Image:    {state['image']}")
    click.echo(f"Current:  {state['current_state']}")
    click.echo(f"Target:   {state['target_state']}")


if __name__ == "__main__":
    cli()
