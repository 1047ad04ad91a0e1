"""Outbound API clients."""
