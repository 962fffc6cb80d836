"""Top-level source package."""
