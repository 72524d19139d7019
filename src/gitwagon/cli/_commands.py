"""Commands: cat, put, ls, exists, put-dir."""

from __future__ import annotations

import sys

import click

from ._helpers import main, _open_wagon, _status


# ---------------------------------------------------------------------------
# cat
# ---------------------------------------------------------------------------

@main.command()
@click.argument("resources", nargs=-1, required=True)
@click.pass_context
def cat(ctx, resources):
    """Concatenate resource contents to stdout."""
    with _open_wagon(ctx) as wagon:
        for name in resources:
            sys.stdout.buffer.write(wagon.read(name))


# ---------------------------------------------------------------------------
# put
# ---------------------------------------------------------------------------

@main.command()
@click.argument("local", type=click.Path(exists=True, dir_okay=False))
@click.argument("resource")
@click.pass_context
def put(ctx, local, resource):
    """Copy a LOCAL file to RESOURCE, then commit and push."""
    with open(local, "rb") as f:
        data = f.read()
    with _open_wagon(ctx) as wagon:
        wagon.write(resource, data)
        _status(ctx, f"Wrote {resource}")


# ---------------------------------------------------------------------------
# ls
# ---------------------------------------------------------------------------

@main.command()
@click.argument("directory", default="")
@click.pass_context
def ls(ctx, directory):
    """List DIRECTORY (default: the base location).

    Directories are shown with a trailing '/'.
    """
    with _open_wagon(ctx) as wagon:
        names = wagon.list(directory)
    for name in names:
        click.echo(name)


# ---------------------------------------------------------------------------
# exists
# ---------------------------------------------------------------------------

@main.command()
@click.argument("resource")
@click.pass_context
def exists(ctx, resource):
    """Exit with status 0 if RESOURCE exists, 1 otherwise.

    A name ending in '/' only matches a directory.
    """
    with _open_wagon(ctx) as wagon:
        found = wagon.exists(resource)
    if not found:
        ctx.exit(1)


# ---------------------------------------------------------------------------
# put-dir
# ---------------------------------------------------------------------------

@main.command("put-dir")
@click.argument("source", type=click.Path(exists=True, file_okay=False))
@click.argument("destination", default="")
@click.pass_context
def put_dir(ctx, source, destination):
    """Copy the SOURCE directory tree into DESTINATION, then commit and push."""
    with _open_wagon(ctx) as wagon:
        wagon.put_directory(source, destination)
        _status(ctx, f"Copied {source} to {destination or '.'}")
