"""Gatehouse - account authentication and lifecycle service."""

__version__ = "0.1.0"
