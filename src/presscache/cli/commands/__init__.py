"""CLI command groups for presscache."""
