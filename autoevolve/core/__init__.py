"""Core infrastructure: errors, logging and configuration."""
