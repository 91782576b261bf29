"""Outbound services (notifications)."""
