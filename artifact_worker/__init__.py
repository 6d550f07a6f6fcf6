"""Durable background worker that builds downloadable ZIP artifacts of project media."""

__version__ = "0.1.0"
