"""Fingerprint cache: identity keys and tag cache backends."""
