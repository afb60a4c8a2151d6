"""Declarative serverless flow deployments."""

__version__ = "0.1.0"
