"""API routers for presscache."""
