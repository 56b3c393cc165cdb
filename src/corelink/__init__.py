"""Mutual RSA proof-of-possession handshake with a remote core over HTTPS."""

__version__ = "0.3.0"
