"""Blog API - FastAPI service with bearer authentication, rate limiting and monitoring.

This package provides the request guard layer for the blog application:
signed bearer credentials, ownership/role gating, per-client rate limiting,
and request timing plus process resource sampling for health reporting.
"""

from __future__ import annotations

__version__ = "0.1.0"
