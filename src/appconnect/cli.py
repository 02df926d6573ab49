"""
AppConnect CLI
Enroll an application and manage its client certificate from the shell.
"""

import json
import sys
from functools import wraps

import click

from .config import get_settings
from .controller import LifecycleController
from .exceptions import ConnectorError
from .management import ManagementClient


def _report_errors(func):
    """Print ConnectorErrors as '[code] message' and exit 1."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ConnectorError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    return wrapper


def _controller(ctx: click.Context) -> LifecycleController:
    return LifecycleController.from_settings(ctx.obj["settings"])


def _resumed(ctx: click.Context) -> LifecycleController:
    controller = _controller(ctx)
    controller.resume()
    return controller


@click.group()
@click.option("--store-dir", default=None, help="Directory for persisted identity (env: AC_STORE_DIR)")
@click.option("--key-algorithm", default=None, help="Key algorithm for new CSRs, e.g. rsa2048 or ec256")
@click.option("--timeout", type=float, default=None, help="Request timeout in seconds")
@click.pass_context
def cli(ctx, store_dir, key_algorithm, timeout):
    """AppConnect: enroll into a cluster trust domain over mutual TLS."""
    ctx.ensure_object(dict)
    ctx.obj["settings"] = get_settings(
        STORE_DIR=store_dir,
        KEY_ALGORITHM=key_algorithm,
        HTTP_TIMEOUT=timeout,
    )


@cli.command()
@click.argument("configuration_url")
@click.pass_context
@_report_errors
def enroll(ctx, configuration_url):
    """Obtain a client certificate from CONFIGURATION_URL."""
    controller = _controller(ctx)
    controller.enroll(configuration_url)
    click.echo(f"Enrolled as '{controller.application}'")


@cli.command()
@click.pass_context
@_report_errors
def renew(ctx):
    """Renew the client certificate with a fresh key."""
    controller = _resumed(ctx)
    controller.renew()
    click.echo("Certificate renewed")


@cli.command()
@click.confirmation_option(prompt="Revoke the current client certificate?")
@click.pass_context
@_report_errors
def revoke(ctx):
    """Revoke the client certificate server-side."""
    controller = _resumed(ctx)
    controller.revoke()
    click.echo("Certificate revoked; local files were left in place")


@cli.command()
@click.pass_context
@_report_errors
def status(ctx):
    """Show the persisted identity."""
    controller = _resumed(ctx)
    certificate = controller.secure_client.certificate
    click.echo(json.dumps({
        "state": controller.state.value,
        "application": controller.application,
        "subject": certificate.subject.rfc4514_string(),
        "not_after": certificate.not_valid_after_utc.isoformat(),
    }, indent=2))


@cli.command()
@click.pass_context
@_report_errors
def events(ctx):
    """List events the application is subscribed to."""
    controller = _resumed(ctx)
    for event in ManagementClient(controller).get_subscribed_events():
        click.echo(f"{event.name} {event.version}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
