"""Building blocks for an HTTP gateway: statistics, logging, trace ids, JSON RPC helpers and Noise sessions."""

__version__ = "0.1.0"