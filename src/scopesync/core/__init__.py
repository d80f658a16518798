"""Core functionality for scopesync."""
