"""Ports, event bus and application state."""
