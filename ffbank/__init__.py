"""Analysis of multi-bit flip-flop banking results on placed designs."""

__version__ = "0.1.0"