"""Configuration and diagnostic logging helpers."""
