"""
Inkwell - Writing job marketplace engine.

Clients post jobs, writers bid, an admin assigns and reviews the work.
"""

from .marketplace import JobService, MarketplaceConfig

try:
    from importlib.metadata import version

    __version__ = version("inkwell")
except Exception:
    __version__ = "0.0.0"

__all__ = ["JobService", "MarketplaceConfig"]
