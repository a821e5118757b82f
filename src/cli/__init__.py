"""Command-line interface for publishing Markdown notes to Confluence.

This package provides the `confluence-publish` CLI tool that wires the
vault store, the Confluence client and the publishing engine together,
with plan review, progress indication and error handling.
"""

from .config import ConfigLoader
from .errors import CLIError, ConfigError, ConfigNotFoundError
from .models import ExitCode, PublishConfig
from .output import OutputHandler
from .publish_command import PublishCommand

__all__ = [
    'CLIError',
    'ConfigError',
    'ConfigLoader',
    'ConfigNotFoundError',
    'ExitCode',
    'OutputHandler',
    'PublishCommand',
    'PublishConfig',
]
