"""Key-authenticated HTTP gateway with per-key daily quotas."""

__version__ = "0.1.0"
