"""CLI entry point for credsetup."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from credsetup import __version__
from credsetup.browser import ClickBrowserLauncher
from credsetup.config import Config, ConfigError, load_config
from credsetup.exceptions import CredSetupError
from credsetup.models import Provider, SetupContext
from credsetup.orchestrator import CredentialSetup, SetupReport
from credsetup.prompts import ClickPromptGateway
from credsetup.remote.client import DashboardClient, RemoteClient
from credsetup.remote.resolver import RemoteResolver

logger = logging.getLogger(__name__)


def _configure_logging(config: Config, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(
        logging, config.logging.level, logging.WARNING,
    )
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _build_client(config: Config) -> RemoteClient:
    """Create the Dashboard client for this invocation."""
    return DashboardClient(
        config.dashboard.base_url,
        config.dashboard.access_key,
        timeout=config.dashboard.timeout_seconds,
    )


def _fail(error: CredSetupError) -> None:
    click.echo(f"Error [{error.code}]: {error}", err=True)
    sys.exit(1)


def _service_options(fn):
    """Options identifying the service whose credentials are being set up."""
    options = [
        click.option("--org", required=True, help="Dashboard organization name."),
        click.option("--app", default="", help="Dashboard application name."),
        click.option("--service", default="", help="Service name."),
        click.option("--region", default="", help="AWS region for console links."),
        click.option(
            "--provider", "cloud_provider", default="aws", show_default=True,
            help="Cloud provider the service deploys to.",
        ),
    ]
    for option in reversed(options):
        fn = option(fn)
    return fn


@click.group()
@click.version_option(version=__version__, prog_name="credsetup")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to credsetup.toml configuration file.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Set up AWS credentials for a Dashboard service."""
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)
    _configure_logging(config, verbose)
    ctx.obj["config"] = config


@cli.command()
@_service_options
@click.option("--yes", "-y", "assume_yes", is_flag=True, help="Do not ask before starting.")
@click.pass_context
def setup(
    ctx: click.Context,
    org: str,
    app: str,
    service: str,
    region: str,
    cloud_provider: str,
    assume_yes: bool,
) -> None:
    """Choose and set up AWS credentials for a service."""
    config: Config = ctx.obj["config"]
    context = SetupContext(
        org=org, app=app, service=service, region=region,
        cloud_provider=cloud_provider,
    )
    try:
        report = asyncio.run(_run_setup(config, context, assume_yes=assume_yes))
    except CredSetupError as e:
        _fail(e)
        return
    if report is not None:
        logger.debug("Setup finished via %s", report.history)


async def _run_setup(
    config: Config, context: SetupContext, *, assume_yes: bool,
) -> SetupReport | None:
    client = _build_client(config)
    prompts = ClickPromptGateway()
    try:
        flow = CredentialSetup(
            client, prompts, ClickBrowserLauncher(), config=config,
        )
        if not await flow.is_applicable(context):
            prompts.show("AWS credentials are already set up for this service.")
            return None
        if not assume_yes and not await flow.confirm_setup():
            return None
        return await flow.run(context)
    finally:
        await client.close()


@cli.command()
@_service_options
@click.pass_context
def check(
    ctx: click.Context,
    org: str,
    app: str,
    service: str,
    region: str,
    cloud_provider: str,
) -> None:
    """Report whether the service still needs credentials set up."""
    config: Config = ctx.obj["config"]
    context = SetupContext(
        org=org, app=app, service=service, region=region,
        cloud_provider=cloud_provider,
    )
    try:
        needed = asyncio.run(_check(config, context))
    except CredSetupError as e:
        _fail(e)
        return
    click.echo("Credential setup needed." if needed else "Credentials already set up.")


async def _check(config: Config, context: SetupContext) -> bool:
    client = _build_client(config)
    try:
        flow = CredentialSetup(
            client, ClickPromptGateway(), ClickBrowserLauncher(), config=config,
        )
        return await flow.is_applicable(context)
    finally:
        await client.close()


@cli.command()
@click.option("--org", required=True, help="Dashboard organization name.")
@click.pass_context
def providers(ctx: click.Context, org: str) -> None:
    """List the organization's AWS providers."""
    config: Config = ctx.obj["config"]
    try:
        rows = asyncio.run(_list_providers(config, org))
    except CredSetupError as e:
        _fail(e)
        return

    if not rows:
        click.echo(f"No providers registered for {org}.")
        return

    table = Table(title=f"Providers in {org}")
    table.add_column("Alias")
    table.add_column("Provider UID")
    table.add_column("Default")
    for provider in rows:
        table.add_row(provider.alias, provider.uid, "yes" if provider.is_default else "")
    Console().print(table)


async def _list_providers(config: Config, org: str) -> list[Provider]:
    client = _build_client(config)
    try:
        return await RemoteResolver(client).list_providers(org)
    finally:
        await client.close()


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
