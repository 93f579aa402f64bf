"""Mirror-accelerated git checkouts for ephemeral CI jobs."""

__version__ = "0.4.0"
