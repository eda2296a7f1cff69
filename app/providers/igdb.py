"""
IGDB metadata provider (via Twitch OAuth2 client credentials)
"""
import logging
import time
from datetime import datetime, timezone
from typing import List, Optional

import requests

from exceptions import NotFoundException, ProviderException
from metadata_providers import MetadataProvider, ProviderGameMetadata, ProviderRelation, ProviderSearchResult

logger = logging.getLogger("main")

IGDB_BASE_URL = "https://api.igdb.com/v4"
TWITCH_TOKEN_URL = "https://id.twitch.tv/oauth2/token"
YOUTUBE_URL = "https://www.youtube.com/watch?v="

GAME_FIELDS = (
    "fields name, url, summary, storyline, first_release_date, total_rating, game_status.status, "
    "websites.url, screenshots.url, artworks.url, videos.name, videos.video_id, cover.url, "
    "involved_companies.developer, involved_companies.publisher, involved_companies.company.name, "
    "genres.name, keywords.name, themes.name, age_ratings.rating_category.rating;"
)
SEARCH_FIELDS = "fields name, summary, first_release_date, cover.url;"

# rating_category.rating (matched case-insensitively) -> minimum age
IGDB_AGE_RATINGS = {
    # PEGI
    "three": 3, "seven": 7, "twelve": 12, "sixteen": 16, "eighteen": 18,
    # ESRB
    "ec": 3, "e": 6, "e10": 10, "t": 13, "m": 17, "ao": 18,
    # CERO
    "cero_a": 0, "cero_b": 12, "cero_c": 15, "cero_d": 17, "cero_z": 18,
    # USK
    "usk_0": 0, "usk_6": 6, "usk_12": 12, "usk_16": 16, "usk_18": 18,
    # GRAC
    "grac_all": 0, "grac_twelve": 12, "grac_fifteen": 15, "grac_eighteen": 18,
    # CLASS_IND
    "class_ind_l": 0, "class_ind_ten": 10, "class_ind_twelve": 12, "class_ind_fourteen": 14,
    "class_ind_sixteen": 16, "class_ind_eighteen": 18,
    # ACB
    "acb_g": 0, "acb_pg": 8, "acb_m": 15, "acb_ma15": 15, "acb_r18": 18,
}


def image_url(url, size):
    """'//images.igdb.com/.../t_thumb/x.jpg' -> 'https://images.igdb.com/.../t_<size>/x.jpg'"""
    if not url:
        return None
    if url.startswith("//"):
        url = f"https:{url}"
    return url.replace("t_thumb", f"t_{size}")


def map_age_rating(age_ratings) -> Optional[int]:
    """Strictest minimum age among the ratings IGDB reports; None when none is known"""
    ages = []
    for age_rating in age_ratings or []:
        rating = ((age_rating or {}).get("rating_category") or {}).get("rating")
        if rating and str(rating).lower() in IGDB_AGE_RATINGS:
            ages.append(IGDB_AGE_RATINGS[str(rating).lower()])
    return max(ages) if ages else None


def _early_access(game_status):
    """None when IGDB reports no status, so the filename flag is kept"""
    if not game_status or not game_status.get("status"):
        return None
    return game_status["status"] == "Early Access"


def _parse_timestamp(value):
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


class IGDBProvider(MetadataProvider):
    """Client for IGDB API (via Twitch)"""

    slug = "igdb"
    name = "IGDB"

    def __init__(self, client_id: str, client_secret: str, priority: int = 10, enabled: bool = True,
                 request_interval_ms: int = 250, session: requests.Session = None):
        super().__init__(priority=priority, enabled=enabled, request_interval_ms=request_interval_ms)
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session or requests.Session()
        self._access_token = None
        self._token_expiry = 0

    def _get_access_token(self):
        """Get or refresh OAuth2 access token"""
        now = time.time()
        if self._access_token and self._token_expiry > now + 60:
            return self._access_token

        try:
            params = {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "client_credentials"
            }
            response = self.session.post(TWITCH_TOKEN_URL, params=params, timeout=10)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"IGDB auth failed: {e}")
            raise ProviderException(f"IGDB Auth failed: {e}", slug=self.slug)

        self._access_token = data["access_token"]
        self._token_expiry = now + data.get("expires_in", 0)
        return self._access_token

    def _query(self, resource, query):
        token = self._get_access_token()
        headers = {
            "Client-ID": self.client_id,
            "Authorization": f"Bearer {token}"
        }
        self.throttle()
        try:
            response = self.session.post(f"{IGDB_BASE_URL}/{resource}", headers=headers, data=query, timeout=10)
            response.raise_for_status()
            return response.json() or []
        except requests.RequestException as e:
            logger.error(f"IGDB {resource} query failed: {e}")
            raise ProviderException(f"IGDB {resource} query failed: {e}", slug=self.slug)

    def search(self, query: str) -> List[ProviderSearchResult]:
        """Search by name; a numeric query is also looked up as an IGDB id"""
        found = []
        if query.strip().isdigit():
            found.extend(self._query("games", f"{SEARCH_FIELDS} where id = {int(query)};"))
        escaped = query.replace('"', '\\"')
        found.extend(self._query("games", f'search "{escaped}"; {SEARCH_FIELDS} limit 10;'))

        results = []
        seen = set()
        for game in found:
            if game["id"] in seen:
                continue
            seen.add(game["id"])
            results.append(ProviderSearchResult(
                provider_data_id=str(game["id"]),
                title=game.get("name"),
                release_date=_parse_timestamp(game.get("first_release_date")),
                cover_url=image_url((game.get("cover") or {}).get("url"), "cover_big_2x"),
                description=game.get("summary"),
            ))
        return results

    def _get_average_playtime(self, provider_data_id) -> Optional[int]:
        """Minutes to beat the main story; None when IGDB has no figure"""
        try:
            data = self._query("game_time_to_beats", f"fields normally; where game_id = {int(provider_data_id)};")
        except ProviderException as e:
            logger.warning(f"IGDB playtime unavailable for {provider_data_id}: {e}")
            return None
        if not data or not data[0].get("normally"):
            return None
        return round(data[0]["normally"] / 60)

    def get_by_provider_data_id(self, provider_data_id: str) -> ProviderGameMetadata:
        games = self._query("games", f"{GAME_FIELDS} where id = {int(provider_data_id)};")
        if not games:
            raise NotFoundException(f"IGDB game {provider_data_id} was not found")
        game = games[0]

        companies = game.get("involved_companies") or []
        videos = game.get("videos") or []
        artworks = game.get("artworks") or []
        description = "\n\n".join(part for part in (game.get("summary"), game.get("storyline")) if part)

        return ProviderGameMetadata(
            provider_data_id=str(game["id"]),
            title=game.get("name"),
            description=description or None,
            release_date=_parse_timestamp(game.get("first_release_date")),
            age_rating=map_age_rating(game.get("age_ratings")),
            average_playtime=self._get_average_playtime(game["id"]),
            rating=game.get("total_rating"),
            early_access=_early_access(game.get("game_status")),
            cover_url=image_url((game.get("cover") or {}).get("url"), "cover_big_2x"),
            background_url=image_url(artworks[0].get("url"), "1080p") if artworks else None,
            url_websites=[site["url"] for site in game.get("websites") or [] if site.get("url")],
            url_screenshots=[image_url(shot["url"], "1080p") for shot in game.get("screenshots") or []
                             if shot.get("url")],
            url_trailers=[f"{YOUTUBE_URL}{video['video_id']}" for video in videos
                          if "trailer" in (video.get("name") or "").lower()],
            url_gameplays=[f"{YOUTUBE_URL}{video['video_id']}" for video in videos
                           if "gameplay" in (video.get("name") or "").lower()],
            developers=[ProviderRelation(str(c["company"]["id"]), c["company"]["name"])
                        for c in companies if c.get("developer") and c.get("company")],
            publishers=[ProviderRelation(str(c["company"]["id"]), c["company"]["name"])
                        for c in companies if c.get("publisher") and c.get("company")],
            genres=[ProviderRelation(str(g["id"]), g["name"]) for g in game.get("genres") or []],
            tags=[ProviderRelation(str(t["id"]), t["name"])
                  for t in (game.get("keywords") or []) + (game.get("themes") or [])],
        )
