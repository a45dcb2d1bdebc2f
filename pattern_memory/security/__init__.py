"""Content safety checks."""

from pattern_memory.security.content_scanner import scan_content, warn_if_sensitive

__all__ = ["scan_content", "warn_if_sensitive"]
