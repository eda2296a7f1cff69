"""
Metadata provider capability interface and the priority-ordered registry.
Providers are constructed explicitly at startup and registered here.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
import threading
import time
from typing import Any, Dict, List, Optional

import structlog

from constants import MERGED_METADATA_SLUG, USER_METADATA_SLUG
from exceptions import ConflictException, NotFoundException, ProviderNotFoundException, ValidationException

logger = structlog.get_logger('metadata_providers')

# Slugs of the merged aggregate and the user override
RESERVED_SLUGS = (MERGED_METADATA_SLUG, USER_METADATA_SLUG)


@dataclass
class ProviderRelation:
    """A developer/publisher/genre/tag as a provider reports it"""
    provider_data_id: Optional[str]
    name: str


@dataclass
class ProviderGameMetadata:
    """One provider's view of one title, before it is stored"""
    provider_data_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    release_date: Optional[Any] = None
    age_rating: Optional[int] = None
    average_playtime: Optional[int] = None
    rating: Optional[float] = None
    early_access: Optional[bool] = None
    cover_url: Optional[str] = None
    background_url: Optional[str] = None
    url_websites: List[str] = field(default_factory=list)
    url_screenshots: List[str] = field(default_factory=list)
    url_trailers: List[str] = field(default_factory=list)
    url_gameplays: List[str] = field(default_factory=list)
    developers: List[ProviderRelation] = field(default_factory=list)
    publishers: List[ProviderRelation] = field(default_factory=list)
    genres: List[ProviderRelation] = field(default_factory=list)
    tags: List[ProviderRelation] = field(default_factory=list)

    def scalar_fields(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "notes": self.notes,
            "release_date": self.release_date,
            "age_rating": self.age_rating,
            "average_playtime": self.average_playtime,
            "rating": self.rating,
            "early_access": self.early_access,
            "cover_url": self.cover_url,
            "background_url": self.background_url,
            "url_websites": self.url_websites,
            "url_screenshots": self.url_screenshots,
            "url_trailers": self.url_trailers,
            "url_gameplays": self.url_gameplays,
        }


@dataclass
class ProviderSearchResult:
    provider_data_id: str
    title: str
    release_date: Optional[Any] = None
    cover_url: Optional[str] = None
    description: Optional[str] = None


class MetadataProvider(ABC):
    """Base class for external metadata sources"""

    slug: str = ""
    name: str = ""

    def __init__(self, priority: int, enabled: bool = True, request_interval_ms: int = 0):
        self.priority = int(priority)
        self.enabled = bool(enabled)
        self.request_interval_ms = max(0, int(request_interval_ms or 0))
        self._last_request_time = 0.0
        self._throttle_lock = threading.Lock()

    def throttle(self):
        """Sleep until at least request_interval_ms has passed since the previous request"""
        with self._throttle_lock:
            delay = self.request_interval_ms / 1000.0
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < delay:
                time.sleep(delay - elapsed)
            self._last_request_time = time.monotonic()

    @abstractmethod
    def search(self, query: str) -> List[ProviderSearchResult]:
        pass

    @abstractmethod
    def get_by_provider_data_id(self, provider_data_id: str) -> ProviderGameMetadata:
        pass

    def get_best_match(self, game) -> Optional[ProviderGameMetadata]:
        """First search hit for the game's title, fetched in full"""
        results = self.search(game.title)
        if not results:
            logger.info("No match found", provider=self.slug, title=game.title)
            return None
        return self.get_by_provider_data_id(results[0].provider_data_id)

    def __repr__(self):
        return f"<{self.__class__.__name__} slug={self.slug} priority={self.priority}>"


class ProviderRegistry:
    """Providers keyed by unique slug and unique priority, kept sorted by descending priority"""

    def __init__(self):
        self._providers: List[MetadataProvider] = []
        self._lock = threading.Lock()

    def register(self, provider: MetadataProvider) -> MetadataProvider:
        if not provider.slug or not str(provider.slug).strip():
            raise ValidationException("Metadata provider slug must not be blank")
        if provider.slug in RESERVED_SLUGS:
            raise ConflictException(f"Metadata provider slug '{provider.slug}' is reserved")

        with self._lock:
            for existing in self._providers:
                if existing.slug == provider.slug:
                    raise ConflictException(f"Metadata provider slug '{provider.slug}' is already registered")
                if existing.priority == provider.priority:
                    raise ConflictException(
                        f"Metadata provider priority {provider.priority} of '{provider.slug}' "
                        f"is already used by '{existing.slug}'"
                    )
            self._providers.append(provider)
            self._providers.sort(key=lambda p: p.priority, reverse=True)

        logger.info("Metadata provider registered", provider=provider.slug, priority=provider.priority,
                    enabled=provider.enabled)
        return provider

    def get_by_slug(self, slug: str) -> MetadataProvider:
        if not slug or not str(slug).strip():
            raise NotFoundException("Metadata provider slug must not be blank")
        for provider in self.providers:
            if provider.slug == slug:
                return provider
        raise ProviderNotFoundException(slug)

    def find(self, slug: str) -> Optional[MetadataProvider]:
        for provider in self.providers:
            if provider.slug == slug:
                return provider
        return None

    @property
    def providers(self) -> List[MetadataProvider]:
        """Snapshot, highest priority first"""
        with self._lock:
            return list(self._providers)

    def enabled(self) -> List[MetadataProvider]:
        return [provider for provider in self.providers if provider.enabled]

    def __len__(self):
        return len(self._providers)
