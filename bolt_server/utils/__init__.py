"""Utility modules for bolt_server."""
