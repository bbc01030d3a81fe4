"""Shared utilities: logging, validation and exceptions."""
