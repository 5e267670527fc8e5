"""Pull request metrics export for GitHub owners and repositories."""

__version__ = "0.1.0"
