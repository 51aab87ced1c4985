"""gwinit - Container entrypoint that launches an MCP gateway"""

from .version import __version__

# Import the main function but don't override the module namespace
from gwinit.cli import main

# Expose main for the entry point
__all__ = ["main", "__version__"]
