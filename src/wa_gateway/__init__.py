"""WA Gateway: pairing, readiness and outbound send for a messaging account."""

__version__ = "0.1.0"
