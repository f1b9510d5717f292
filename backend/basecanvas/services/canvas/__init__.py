"""Canvas domain services: grid, gates, persistence and airdrops.

This package contains the authoritative shared-state logic imported by the
HTTP blueprint and socket handlers, keeping transport concerns separated
from the paint pipeline itself.
"""
