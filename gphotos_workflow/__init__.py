"""Download workflow for gphotos-cdp."""

from .harvest import GalleryHarvest
from .iteration import IterationDriver, NavigationCursor

__all__ = [
    "GalleryHarvest",
    "IterationDriver",
    "NavigationCursor",
]
