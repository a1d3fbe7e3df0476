"""Gateways, controllers and supporting services."""
