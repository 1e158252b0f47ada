"""Database models"""

from theme_gallery.models.theme import Theme

__all__ = [
    "Theme",
]
