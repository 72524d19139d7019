"""Shared helpers and the main CLI group."""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager

import click

from ..credentials import Credentials, resolve_credentials
from ..exceptions import FinalizeError, WagonError
from ..finalize import DEFAULT_COMMIT_MESSAGE
from ..locator import parse_locator
from ..wagon import GitWagon


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _require_url(ctx) -> str:
    """Get the locator from context, raising a clear error if missing."""
    url = ctx.obj.get("url")
    if not url:
        raise click.ClickException(
            "No locator specified. Use --url or set GITWAGON_URL."
        )
    return url


def _credentials(ctx, url: str) -> Credentials | None:
    """Credentials from --username/--password, else the git credential helper."""
    username = ctx.obj.get("username")
    if username:
        return Credentials(username, ctx.obj.get("password") or "")
    if ctx.obj.get("credential_helper"):
        try:
            address = parse_locator(url).repository_address
        except WagonError as exc:
            raise click.ClickException(str(exc))
        return resolve_credentials(address)
    return None


@contextmanager
def _open_wagon(ctx):
    """Run the body in a session; commit and push on success, discard on error."""
    url = _require_url(ctx)
    try:
        wagon = GitWagon.connect(
            url,
            credentials=_credentials(ctx, url),
            message=ctx.obj["message"],
            work_dir=ctx.obj.get("work_dir"),
        )
    except WagonError as exc:
        raise click.ClickException(str(exc))

    try:
        yield wagon
    except WagonError as exc:
        wagon.abort()
        raise click.ClickException(str(exc))
    except BaseException:
        wagon.abort()
        raise

    try:
        done = wagon.close()
    except FinalizeError as exc:
        raise click.ClickException(str(exc))
    for address in done:
        _status(ctx, f"Finalized {address}")


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--url", "-u", envvar="GITWAGON_URL",
              help="Base locator git:<address>[#<branch>]/<path> (or set GITWAGON_URL).")
@click.option("--username", envvar="GITWAGON_USERNAME",
              help="Username for HTTP(S) remotes (or set GITWAGON_USERNAME).")
@click.option("--password", envvar="GITWAGON_PASSWORD",
              help="Password for HTTP(S) remotes (or set GITWAGON_PASSWORD).")
@click.option("--message", "-m", envvar="GITWAGON_MESSAGE", default=DEFAULT_COMMIT_MESSAGE,
              show_default=True, help="Commit message used when the session closes.")
@click.option("--work-dir", envvar="GITWAGON_WORK_DIR", type=click.Path(file_okay=False),
              help="Where working copies are cloned (default: system temp dir).")
@click.option("--credential-helper", is_flag=True,
              help="Ask 'git credential fill' / 'gh auth token' for credentials.")
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, url, username, password, message, work_dir, credential_helper, verbose):
    """gitwagon — files on git branches, addressed like a file system.

    Each command clones the repositories it touches, works on the local
    copies, then commits and pushes every change in one go.

    \b
    Quick start:
      export GITWAGON_URL='git:https://host/org/site.git#gh-pages/'
      gitwagon put index.html index.html
      gitwagon ls
      gitwagon cat index.html
      gitwagon put-dir build/ ../docs.git/

    \b
    Resource names are relative to the locator and may use '..' to
    reach sibling repositories next to it.
    """
    ctx.ensure_object(dict)
    ctx.obj.update(
        url=url,
        username=username,
        password=password,
        message=message,
        work_dir=work_dir,
        credential_helper=credential_helper,
        verbose=verbose,
    )
    if verbose:
        logging.basicConfig(
            level=logging.INFO, stream=sys.stderr,
            format="%(levelname)s %(name)s: %(message)s",
        )
