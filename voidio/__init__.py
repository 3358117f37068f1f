"""UDP servers, QUIC packet processing and ELF parsing."""

__version__ = "0.1.14"