"""Deployment orchestration bot for GitHub check runs and deployments."""

__version__ = "0.1.0"
