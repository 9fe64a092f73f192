"""Postcard image generation: prompt writing plus a multi-backend image orchestrator."""

__version__ = "0.1.0"
