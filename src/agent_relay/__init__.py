"""Mailbox dispatch and session health checks for long-lived automation agents."""

__version__ = "0.1.0"
