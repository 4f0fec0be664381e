"""
Line sources feed text into the capture multiplexer.

Each source module exposes a build_source(...) helper returning a factory
that turns a Channel into a LineSource.
"""

__all__ = [
    "static",
    "tshark",
    "udp",
]
