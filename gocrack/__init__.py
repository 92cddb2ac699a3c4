"""File management, e-mail notifications, RPC messages and a worker RPC client for a password cracking service."""

__version__ = "0.1.0"