"""Core orchestration."""
