"""Named mutexes shared between clients over TCP, with a JSON status endpoint."""

__version__ = "0.1.0"