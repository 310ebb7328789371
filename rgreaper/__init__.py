"""rgreaper - TTL based garbage collection for ephemeral Azure resource groups."""

__version__ = "0.3.0"
