"""Backend services."""

from .runtime_host import RuntimeHost

__all__ = ["RuntimeHost"]
