"""Versioned JSON Schema set for plugin <-> gateway messages."""
