"""HTTP helpers for serving a site."""

from .app import RequestPipeline, Site, create_site_app
from .exchange import Exchange, error_response
from .router import Route, Router

__all__ = [
    "Exchange",
    "RequestPipeline",
    "Route",
    "Router",
    "Site",
    "create_site_app",
    "error_response",
]
