"""Skill Portal - super-admin safe-action service."""

__version__ = "0.3.0"
