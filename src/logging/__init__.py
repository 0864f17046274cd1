"""Structured logging setup and log context."""
