"""Shared logging and tracing setup for the nasimg service."""
