"""gitwagon CLI: read and write files on git branches through working copies."""

from ._helpers import main  # noqa: F401

# Import command modules to register Click commands with the main group.
from . import _commands  # noqa: F401
