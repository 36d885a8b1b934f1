"""
presscache - Durable image cache for expiring content-source attachments.

Serves images from a content-addressed local cache, fetching and refreshing
them from time-limited upstream URLs on a publication-aware schedule.
"""

from __future__ import annotations

__version__ = "0.4.0"
__author__ = "presscache"
__email__ = "noreply@presscache.dev"
__license__ = "AGPL-3.0-or-later"

__all__ = ["__version__", "__author__", "__email__", "__license__"]
