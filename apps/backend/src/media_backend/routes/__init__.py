"""Backend HTTP routes."""

from .requests import requests_bp

__all__ = ["requests_bp"]
