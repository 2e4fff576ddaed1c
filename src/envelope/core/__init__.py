"""Configuration, error types and logging setup."""
