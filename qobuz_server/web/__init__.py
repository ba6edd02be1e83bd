"""
Web Layer.

This package exposes the job queue and the catalog browse calls over HTTP.
"""

from .app import Services, build_services, create_app, setup_services

__all__ = ["Services", "build_services", "create_app", "setup_services"]
