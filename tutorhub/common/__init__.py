"""Shared helpers: errors, role guards and database retry."""
