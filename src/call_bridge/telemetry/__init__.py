"""Logging setup for command-line runs."""
