"""crateyard — a static, file-based crate registry."""

__version__ = "0.1.0"
