"""Serve a directory of templates, decorating JSON from a backend API."""

from .server.config import SiteConfig
from .server.http import Exchange, Site, create_site_app

__all__ = ["Exchange", "Site", "SiteConfig", "create_site_app"]
