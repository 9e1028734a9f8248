"""VaultX AI Tools: a directory service for AI tools."""

__version__ = "1.0.0"
