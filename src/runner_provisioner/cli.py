"""Command-line interface for provisioning runners."""

from __future__ import annotations

import os

import httpx
import typer
from rich.console import Console
from rich.table import Table

from runner_provisioner.clients.linode import DEFAULT_LINODE_API_URL, LinodeClient
from runner_provisioner.config import (
    DEFAULT_RUNNER_LABEL,
    DEFAULT_RUNNER_VERSION,
    INPUTS,
    REQUIRED_INPUTS,
    input_env_var,
    inputs_from_env,
    load_config_file,
)
from runner_provisioner.configurator import render_runner_script
from runner_provisioner.errors import ConfigurationError, ProvisionError
from runner_provisioner.runner import configure_logging, run_provisioning

app = typer.Typer(
    name="runner-provision",
    help="Create and destroy Linode machines acting as GitHub Actions runners.",
    no_args_is_help=True,
)

console = Console()


@app.command("run")
def run_cmd(
    action: str | None = typer.Option(
        None,
        "--action",
        "-a",
        help="create or destroy (default: INPUT_ACTION)",
    ),
    config_path: str | None = typer.Option(
        None,
        "--config",
        "-c",
        help="JSON or YAML file with inputs (overridden by INPUT_* and options)",
    ),
    organization: str | None = typer.Option(None, "--organization", help="Repository owner"),
    repo_name: str | None = typer.Option(None, "--repo-name", help="Repository name"),
    machine_type: str | None = typer.Option(None, "--machine-type", help="Linode plan"),
    image: str | None = typer.Option(None, "--image", help="Linode image"),
    region: str | None = typer.Option(None, "--region", help="Linode region"),
    runner_label: str | None = typer.Option(None, "--runner-label", help="Runner label"),
    tags: str | None = typer.Option(None, "--tags", help="Comma-separated VM tags"),
    machine_id: str | None = typer.Option(None, "--machine-id", help="Instance id to destroy"),
    search_phrase: str | None = typer.Option(
        None, "--search-phrase", help="Phrase identifying the instance to destroy"
    ),
    output_path: str | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Path to write the outputs as JSON",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Create or destroy a runner machine.

    Secrets (github_token, linode_token, root_password) are read from
    INPUT_* environment variables or the config file, never from options.

    Example:
        INPUT_GITHUB_TOKEN=... LINODE_TOKEN=... INPUT_ROOT_PASSWORD=... \\
            runner-provision run -a create --organization acme --repo-name app \\
            --machine-type g6-standard-1 --image linode/ubuntu22.04
    """
    configure_logging(verbose)

    bag: dict[str, str] = {}
    if config_path:
        try:
            bag.update(load_config_file(config_path))
        except ConfigurationError as e:
            console.print(f"[red]Error:[/red] {e}")
            raise typer.Exit(code=1) from None
    bag.update(inputs_from_env(os.environ))

    overrides = {
        "action": action,
        "organization": organization,
        "repo_name": repo_name,
        "machine_type": machine_type,
        "image": image,
        "region": region,
        "runner_label": runner_label,
        "tags": tags,
        "machine_id": machine_id,
        "search_phrase": search_phrase,
    }
    bag.update({k: v for k, v in overrides.items() if v is not None})

    exit_code, result = run_provisioning(bag, env=os.environ, output_path=output_path)

    if result is not None and result.outputs is not None:
        table = Table(title="Outputs")
        table.add_column("Name", style="cyan", no_wrap=True)
        table.add_column("Value", style="green")
        for name, value in result.outputs.as_dict().items():
            table.add_row(name, value)
        console.print(table)

    if exit_code == 0:
        console.print(f"[green]✓ {bag.get('action', '')} succeeded[/green]")
    else:
        reason = result.reason if result is not None else "invalid inputs"
        console.print(f"[red]✗ Failed:[/red] {reason}")
    raise typer.Exit(code=exit_code)


@app.command("inputs")
def inputs_cmd() -> None:
    """Show the accepted inputs and their INPUT_* environment variables."""
    table = Table(title="Inputs")
    table.add_column("Input", style="cyan", no_wrap=True)
    table.add_column("Variable", style="dim")
    table.add_column("Required", style="yellow")
    table.add_column("Current Value", style="green")
    table.add_column("Description")

    for name, description in INPUTS.items():
        env_var = input_env_var(name)
        required = "Yes" if name in REQUIRED_INPUTS else "No"
        value = os.environ.get(env_var, "[not set]")
        if value != "[not set]" and ("token" in name or "password" in name):
            value = "***"
        if len(value) > 50:
            value = value[:47] + "..."
        table.add_row(name, env_var, required, value, description)

    console.print(table)


@app.command("instances")
def instances_cmd(
    search_phrase: str | None = typer.Option(
        None,
        "--search",
        "-s",
        help="Only show instances matching this phrase (label or tag)",
    ),
) -> None:
    """List Linode instances visible to LINODE_TOKEN."""
    token = os.environ.get("LINODE_TOKEN") or os.environ.get(input_env_var("linode_token"))
    if not token:
        console.print("[red]Error:[/red] LINODE_TOKEN is not set")
        raise typer.Exit(code=1)

    api_url = os.environ.get("LINODE_API_URL", DEFAULT_LINODE_API_URL)
    try:
        with httpx.Client(timeout=30.0) as http:
            instances = LinodeClient(http, token, api_url=api_url).list_instances()
    except ProvisionError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from None

    if search_phrase:
        instances = [i for i in instances if i.matches(search_phrase)]

    if not instances:
        console.print("[yellow]No instances found.[/yellow]")
        return

    table = Table(title="Linode Instances")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Label", style="green")
    table.add_column("IPv4")
    table.add_column("Status", style="yellow")
    table.add_column("Tags", style="dim")

    for instance in instances:
        table.add_row(
            str(instance.id),
            instance.label,
            instance.ipv4,
            instance.status,
            ", ".join(sorted(instance.tags)),
        )

    console.print(table)


@app.command("render-script")
def render_script_cmd(
    organization: str = typer.Option(..., "--organization", help="Repository owner"),
    repo_name: str = typer.Option(..., "--repo-name", help="Repository name"),
    runner_label: str = typer.Option(DEFAULT_RUNNER_LABEL, "--runner-label", help="Runner label"),
    runner_version: str = typer.Option(
        DEFAULT_RUNNER_VERSION, "--runner-version", help="actions/runner release"
    ),
    token: str = typer.Option(
        "<registration-token>",
        "--token",
        help="Registration token to embed (placeholder by default)",
    ),
) -> None:
    """Print the runner install script that would run on the machine."""
    try:
        script = render_runner_script(
            f"https://github.com/{organization}/{repo_name}",
            token,
            runner_label,
            runner_version=runner_version,
        )
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from None
    typer.echo(script, nl=False)


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
