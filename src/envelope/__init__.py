"""Envelope: anonymous, location-gated micro-posting backend."""

__version__ = "0.1.0"
