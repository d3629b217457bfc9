"""Server utilities: configuration, assets, pages and the backend proxy."""

from .asset_cache import AssetCache, AssetEntry
from .assets import ASSET_TYPES, AssetKind, AssetPipeline, AssetType
from .config import AuthPattern, SiteConfig
from .errors import AssetPathError, BackendError, ConfigError

__all__ = [
    "ASSET_TYPES",
    "AssetCache",
    "AssetEntry",
    "AssetKind",
    "AssetPathError",
    "AssetPipeline",
    "AssetType",
    "AuthPattern",
    "BackendError",
    "ConfigError",
    "SiteConfig",
]
