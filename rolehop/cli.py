#!/usr/bin/env python3
"""
rolehop CLI

Keeps a named AWS CLI profile filled with fresh temporary credentials by
walking a chain of IAM roles.

Commands:
    run         Start the refresh loop
    validate    Check a configuration file without contacting AWS

Usage:
    rolehop run --role ARN --role ARN [--use ARN] [OPTIONS]
    rolehop run --config rolehop.json [OPTIONS]
    rolehop validate --config rolehop.json

Every option of ``run`` can also be set through a ROLEHOP_* environment
variable or a local .env file.

Module: cli
"""

import json
import sys
import threading
import time
from typing import Any, Optional

import click
import structlog
from dotenv import load_dotenv

from .auth import AuthorityChain, RolePool, RoleSelector, UsableSet
from .config import DEFAULT_REFRESH_MINUTES, DEFAULT_REGION, clamp_refresh, load_settings
from .errors import IdentityError, RolehopError
from .logging_config import configure_logging
from .models import ChainSettings
from .profile_writer import DEFAULT_PROFILE_NAME, ProfileWriter
from .scheduler import RefreshScheduler, SignalWatcher
from .version import __version__

logger = structlog.get_logger(__name__)

#: Short delay before exit so in-flight log lines are flushed
CLEANUP_WAIT_SECONDS = 0.1


def format_json(data: Any, pretty: bool = True) -> str:
    """Format data as JSON string"""
    if pretty:
        return json.dumps(data, indent=2, ensure_ascii=False)
    return json.dumps(data, ensure_ascii=False)


def resolve_settings(
    config: Optional[str], refresh: int, region: str, roles: tuple, usable: tuple
) -> ChainSettings:
    """Settings from the config file when one is given, otherwise from the flags."""
    if config:
        logger.debug("Loading config file", path=config)
        return load_settings(config)

    return ChainSettings(refresh=refresh, roles=list(roles), usable=list(usable), region=region)


@click.group()
@click.version_option(version=__version__, prog_name="rolehop")
def cli():
    """
    rolehop - chained AWS role assumption

    Assumes roles from a pool, each one as the previously assumed identity,
    and publishes the first role with meaningful permissions as an AWS CLI
    profile.
    """
    load_dotenv()


@cli.command()
@click.option("--config", "-c", envvar="ROLEHOP_CONFIG", type=click.Path(dir_okay=False), help="Path to config file")
@click.option(
    "--refresh",
    envvar="ROLEHOP_REFRESH",
    type=int,
    default=DEFAULT_REFRESH_MINUTES,
    help="Refresh credentials every n minutes",
    show_default=True,
)
@click.option(
    "--region",
    envvar="ROLEHOP_REGION",
    default=DEFAULT_REGION,
    help="AWS region used for IAM communication",
    show_default=True,
)
@click.option(
    "--role",
    "roles",
    envvar="ROLEHOP_ROLES",
    multiple=True,
    help="AWS role ARN to assume (repeat, at least 2 required)",
)
@click.option(
    "--use",
    "usable",
    envvar="ROLEHOP_USE",
    multiple=True,
    help="AWS role ARN with meaningful permissions (must also be given with --role)",
)
@click.option(
    "--profile-name",
    envvar="ROLEHOP_PROFILE_NAME",
    default=DEFAULT_PROFILE_NAME,
    help="AWS CLI profile to write",
    show_default=True,
)
@click.option("--json-logs", envvar="ROLEHOP_JSON_LOGS", is_flag=True, help="Emit JSON log lines")
@click.option("--verbose", "-v", envvar="ROLEHOP_VERBOSE", is_flag=True, help="Verbose log output")
def run(
    config: Optional[str],
    refresh: int,
    region: str,
    roles: tuple,
    usable: tuple,
    profile_name: str,
    json_logs: bool,
    verbose: bool,
):
    """
    Start the credential refresh loop

    Runs until SIGINT, SIGTERM or SIGHUP, or until a refresh fails.

    Examples:
        rolehop run --role arn:aws:iam::111111111111:role/a --role arn:aws:iam::222222222222:role/b
        rolehop run --config ~/.config/rolehop/config.json --verbose
    """
    configure_logging(verbose=verbose, json_logs=json_logs)

    logger.info("Starting app", version=__version__)

    try:
        settings = resolve_settings(config, refresh, region, roles, usable)
        pool = RolePool(settings.roles)
        usable_set = UsableSet(settings.usable, pool.roles)
        chain = AuthorityChain(region=settings.region)
    except RolehopError as e:
        logger.error("Failed to initialize app", error=e.message, details=e.details)
        sys.exit(1)

    interval_minutes = clamp_refresh(settings.refresh)

    if verbose:
        try:
            logger.debug("Starting identity", arn=chain.identity())
        except IdentityError as e:
            logger.warning("Unable to resolve starting identity", error=e.message)

    stop_event = threading.Event()
    watcher = SignalWatcher(stop_event).start()

    scheduler = RefreshScheduler(
        RoleSelector(pool, usable_set, chain),
        ProfileWriter(profile_name=profile_name),
        settings.region,
    )

    failed = False
    try:
        scheduler.run(stop_event, interval_minutes * 60)
    except RolehopError:
        failed = True
    finally:
        watcher.stop()

    logger.info("Cleaning up resources...")
    time.sleep(CLEANUP_WAIT_SECONDS)

    if failed:
        sys.exit(1)

    logger.info("Application terminated gracefully")


@cli.command()
@click.option("--config", "-c", required=True, type=click.Path(dir_okay=False), help="Path to config file")
@click.option("--pretty/--compact", default=True, help="Pretty print JSON output", show_default=True)
@click.option("--verbose", "-v", is_flag=True, help="Verbose log output")
def validate(config: str, pretty: bool, verbose: bool):
    """
    Validate a configuration file

    Parses the file, checks the selected chain and prints the settings the
    refresh loop would use. Does not contact AWS.

    Examples:
        rolehop validate --config rolehop.json
    """
    configure_logging(verbose=verbose)

    try:
        settings = load_settings(config)
        pool = RolePool(settings.roles)
        UsableSet(settings.usable, pool.roles)
    except RolehopError as e:
        click.echo(f"✗ Validation failed:\n{e.format()}", err=True)
        sys.exit(1)

    click.echo("✓ Configuration is valid", err=True)
    click.echo(
        format_json(
            {
                "region": settings.region,
                "refresh": clamp_refresh(settings.refresh),
                "roles": settings.roles,
                "usable": settings.usable,
            },
            pretty=pretty,
        )
    )


if __name__ == "__main__":
    cli()
