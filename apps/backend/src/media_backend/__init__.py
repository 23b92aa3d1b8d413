"""
Media Backend - Flask API in front of the transcode runtimes

This app is deployed on the backend server. It:
1. Accepts JSON envelopes and image uploads from the frontend
2. Runs them through a pool of in-process runtimes
3. Returns the correlated response envelope as JSON

Deployment:
    pip install media-transcode
    flask --app media_backend.app:create_app run
"""

from .app import create_app
from .config import Config

__all__ = ["create_app", "Config"]
