"""Version information (kept import-free so packaging can read it cheaply)."""

__version__ = "0.3.0"
__version_date__ = "2026-10-12"
