"""Shared utilities: structured logging setup and async retry."""
