"""Logging setup for the engine and CLI."""
