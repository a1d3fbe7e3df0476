"""Shared utilities: errors, configuration, logging."""
