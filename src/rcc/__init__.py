"""rcc: threaded comments, live sync and vote bookkeeping for a Reddit-style app."""

__version__ = "0.1.0"
