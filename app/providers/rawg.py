"""
RAWG metadata provider (https://rawg.io/apidocs)
"""
import logging
from datetime import datetime, timezone
from typing import List

import requests

from exceptions import NotFoundException, ProviderException
from metadata_providers import MetadataProvider, ProviderGameMetadata, ProviderRelation, ProviderSearchResult

logger = logging.getLogger("main")

# API Configuration
RAWG_BASE_URL = "https://api.rawg.io/api"

# ESRB slug -> minimum age
RAWG_ESRB_MIN_AGE = {
    "everyone": 6,
    "everyone-10-plus": 10,
    "teen": 13,
    "mature": 17,
    "adults-only": 18,
}


def _parse_date(value):
    if not value:
        return None
    try:
        return datetime.strptime(value, "%Y-%m-%d").replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def _relations(items):
    return [ProviderRelation(provider_data_id=str(item["id"]), name=item["name"]) for item in items or []
            if item.get("name")]


class RAWGProvider(MetadataProvider):
    """Client for RAWG API"""

    slug = "rawg"
    name = "RAWG"

    def __init__(self, api_key: str, priority: int = 5, enabled: bool = True, request_interval_ms: int = 500,
                 session: requests.Session = None):
        super().__init__(priority=priority, enabled=enabled, request_interval_ms=request_interval_ms)
        self.api_key = api_key
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": "Ludoteca Game Library"
        })

    def _get(self, path, **params):
        self.throttle()
        params["key"] = self.api_key
        try:
            response = self.session.get(f"{RAWG_BASE_URL}{path}", params=params, timeout=10)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.error(f"RAWG API error for {path}: {e}")
            raise ProviderException(f"RAWG API failed: {e}", slug=self.slug)

    def search(self, query: str) -> List[ProviderSearchResult]:
        """Search for a game by title"""
        data = self._get("/games", search=query, page_size=10) or {}
        results = data.get("results", [])
        if not results:
            logger.warning(f"No RAWG results for '{query}'")
        return [
            ProviderSearchResult(
                provider_data_id=str(result["id"]),
                title=result.get("name"),
                release_date=_parse_date(result.get("released")),
                cover_url=result.get("background_image"),
            )
            for result in results
        ]

    def get_by_provider_data_id(self, provider_data_id: str) -> ProviderGameMetadata:
        """Get detailed game information by RAWG ID"""
        details = self._get(f"/games/{provider_data_id}")
        if not details:
            raise NotFoundException(f"RAWG game {provider_data_id} was not found")

        screenshots = []
        try:
            shots = self._get(f"/games/{provider_data_id}/screenshots") or {}
            screenshots = [shot["image"] for shot in shots.get("results", []) if shot.get("image")]
        except ProviderException as e:
            logger.warning(f"RAWG screenshots unavailable for {provider_data_id}: {e}")

        rating = details.get("metacritic")
        if rating is None and details.get("rating"):
            rating = details["rating"] * 20  # 0-5 -> 0-100

        playtime = details.get("playtime")
        esrb = (details.get("esrb_rating") or {}).get("slug")

        return ProviderGameMetadata(
            provider_data_id=str(details["id"]),
            title=details.get("name"),
            description=details.get("description_raw") or details.get("description"),
            release_date=_parse_date(details.get("released")),
            age_rating=RAWG_ESRB_MIN_AGE.get(esrb),
            average_playtime=playtime * 60 if playtime else None,  # Hours -> minutes
            rating=rating,
            early_access=None,
            cover_url=details.get("background_image"),
            background_url=details.get("background_image_additional") or details.get("background_image"),
            url_websites=[details["website"]] if details.get("website") else [],
            url_screenshots=screenshots,
            developers=_relations(details.get("developers")),
            publishers=_relations(details.get("publishers")),
            genres=_relations(details.get("genres")),
            tags=_relations(details.get("tags", [])[:10]),
        )
