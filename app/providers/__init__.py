"""
Metadata provider clients.

Each client is a MetadataProvider constructed explicitly from settings and
registered with the MetadataService at startup (see app.register_providers).
"""
from providers.igdb import IGDBProvider
from providers.rawg import RAWGProvider

__all__ = ["IGDBProvider", "RAWGProvider"]
