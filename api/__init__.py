"""Serverless HTTP endpoints."""
