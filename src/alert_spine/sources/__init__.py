"""Inventory (host) and group directory sources."""
