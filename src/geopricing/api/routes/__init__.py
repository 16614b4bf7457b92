"""Route group exports."""

from . import configs, health, pricing

__all__ = ["configs", "health", "pricing"]
