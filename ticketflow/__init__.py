"""Ticketflow: workflow automation engine for helpdesk tickets."""

__version__ = "0.1.0"
