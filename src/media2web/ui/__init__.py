"""
User interface components for media2web.

Provides both Rich-based and plain-text progress displays.
"""

from media2web.ui.legacy_ui import LegacyProgressUI, fmt_hms
from media2web.ui.rich_ui import RichProgressUI

__all__ = [
    "LegacyProgressUI",
    "RichProgressUI",
    "fmt_hms",
]
