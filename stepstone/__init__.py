"""Pre-flight dependency checks for GreptimeDB cluster components."""

__version__ = "0.1.0"
