"""Sync the current week of a Monday.com board to a Google Calendar."""

__version__ = "0.1.0"
