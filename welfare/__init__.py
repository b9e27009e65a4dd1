"""Welfare management API: grievances, scheme applications and their stage workflows."""

__version__ = "0.1.0"
