"""Sandboxed, streamed execution of project code over WebSockets."""

__version__ = "0.1.0"
