"""Probe sequences for each kind of external dependency."""
