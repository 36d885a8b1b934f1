"""
HTTP API for presscache.

Serves cached images through the image proxy and exposes health and cache
administration endpoints.
"""
