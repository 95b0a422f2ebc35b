"""Shared utilities: file I/O, locks, path resolution and subprocess wrappers."""
