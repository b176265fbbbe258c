"""Re-Print recycler panel: simulated run engine, device logs and HTTP API."""

__version__ = "0.1.0"
