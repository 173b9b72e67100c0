"""Game domain services: capture, lifecycle, scoring and live recompute.

This package contains the domain logic that HTTP routes and CLI commands
call into, keeping transport concerns separated from the game rules.
"""
