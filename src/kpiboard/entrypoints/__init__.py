"""Entry points - inward-facing surfaces over the services."""
