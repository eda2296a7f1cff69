"""
Tests for the IGDB and RAWG clients
"""
from unittest.mock import MagicMock

import pytest
import requests

from exceptions import NotFoundException, ProviderException
from providers.igdb import IGDBProvider, image_url, map_age_rating
from providers.rawg import RAWGProvider


def response(payload, status_code=200):
    mock = MagicMock()
    mock.status_code = status_code
    mock.json.return_value = payload
    if status_code >= 400:
        mock.raise_for_status.side_effect = requests.HTTPError(f"{status_code} error")
    return mock


class TestIGDBHelpers:
    """Tests for IGDB mapping helpers"""

    def test_image_url(self):
        assert image_url("//images.igdb.com/igdb/image/upload/t_thumb/co1.jpg", "cover_big_2x") == \
            "https://images.igdb.com/igdb/image/upload/t_cover_big_2x/co1.jpg"
        assert image_url(None, "1080p") is None

    def test_age_rating_is_strictest(self):
        ratings = [
            {"rating_category": {"rating": "M"}},
            {"rating_category": {"rating": "Twelve"}},
        ]
        assert map_age_rating(ratings) == 17

    def test_unknown_age_rating(self):
        assert map_age_rating([{"rating_category": {"rating": "RP"}}]) is None
        assert map_age_rating(None) is None


class TestIGDBProvider:
    """Tests for IGDBProvider with a mocked HTTP session"""

    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.headers = {}
        return session

    @pytest.fixture
    def provider(self, session):
        return IGDBProvider("client", "secret", request_interval_ms=0, session=session)

    def _route(self, session, games, playtime=None):
        def post(url, **kwargs):
            if "oauth2" in url:
                return response({"access_token": "token", "expires_in": 3600})
            if url.endswith("/game_time_to_beats"):
                return response(playtime or [])
            return response(games)
        session.post.side_effect = post

    def test_get_by_provider_data_id_maps_fields(self, provider, session):
        self._route(session, [{
            "id": 1942,
            "name": "The Witcher 3",
            "summary": "Summary",
            "storyline": "Story",
            "first_release_date": 1431993600,
            "total_rating": 93.5,
            "game_status": {"status": "Early Access"},
            "cover": {"url": "//images.igdb.com/t_thumb/cover.jpg"},
            "videos": [{"name": "Launch Trailer", "video_id": "abc"}, {"name": "Gameplay", "video_id": "def"}],
            "involved_companies": [
                {"developer": True, "publisher": False, "company": {"id": 1, "name": "CD PROJEKT RED"}},
                {"developer": False, "publisher": True, "company": {"id": 2, "name": "WB Games"}},
            ],
            "genres": [{"id": 12, "name": "Role-playing (RPG)"}],
            "keywords": [{"id": 5, "name": "open world"}],
            "themes": [{"id": 1, "name": "Fantasy"}],
            "age_ratings": [{"rating_category": {"rating": "M"}}],
        }], playtime=[{"normally": 6000}])

        data = provider.get_by_provider_data_id("1942")
        assert data.provider_data_id == "1942"
        assert data.description == "Summary\n\nStory"
        assert data.release_date.year == 2015
        assert data.early_access is True
        assert data.age_rating == 17
        assert data.average_playtime == 100
        assert data.cover_url == "https://images.igdb.com/t_cover_big_2x/cover.jpg"
        assert data.url_trailers == ["https://www.youtube.com/watch?v=abc"]
        assert data.url_gameplays == ["https://www.youtube.com/watch?v=def"]
        assert [d.name for d in data.developers] == ["CD PROJEKT RED"]
        assert [p.name for p in data.publishers] == ["WB Games"]
        assert [t.name for t in data.tags] == ["open world", "Fantasy"]

    def test_missing_playtime_and_rating(self, provider, session):
        self._route(session, [{"id": 5, "name": "Obscure"}])
        data = provider.get_by_provider_data_id("5")
        assert data.average_playtime is None
        assert data.age_rating is None
        # No status keeps the early access flag parsed from the filename
        assert data.early_access is None

    def test_released_game_is_not_early_access(self, provider, session):
        self._route(session, [{"id": 6, "name": "Done", "game_status": {"status": "Released"}}])
        assert provider.get_by_provider_data_id("6").early_access is False

    def test_not_found(self, provider, session):
        self._route(session, [])
        with pytest.raises(NotFoundException):
            provider.get_by_provider_data_id("404")

    def test_search_numeric_query_deduplicates(self, provider, session):
        self._route(session, [{"id": 7, "name": "Seven"}])
        results = provider.search("7")
        assert [r.provider_data_id for r in results] == ["7"]

    def test_token_is_reused(self, provider, session):
        self._route(session, [])
        provider.search("a")
        provider.search("b")
        token_calls = [c for c in session.post.call_args_list if "oauth2" in c.args[0]]
        assert len(token_calls) == 1

    def test_auth_failure(self, provider, session):
        session.post.side_effect = requests.ConnectionError("offline")
        with pytest.raises(ProviderException):
            provider.search("anything")


class TestRAWGProvider:
    """Tests for RAWGProvider with a mocked HTTP session"""

    @pytest.fixture
    def session(self):
        session = MagicMock()
        session.headers = {}
        return session

    @pytest.fixture
    def provider(self, session):
        return RAWGProvider("key", request_interval_ms=0, session=session)

    def test_get_by_provider_data_id_maps_fields(self, provider, session):
        details = {
            "id": 3328,
            "name": "The Witcher 3",
            "description_raw": "Plain text",
            "released": "2015-05-18",
            "metacritic": None,
            "rating": 4.5,
            "playtime": 46,
            "esrb_rating": {"slug": "mature"},
            "background_image": "https://media.rawg.io/bg.jpg",
            "website": "https://thewitcher.com",
            "developers": [{"id": 1, "name": "CD PROJEKT RED"}],
            "publishers": [{"id": 2, "name": "WB Games"}],
            "genres": [{"id": 3, "name": "RPG"}],
            "tags": [{"id": n, "name": f"tag {n}"} for n in range(15)],
        }
        screenshots = {"results": [{"image": "https://media.rawg.io/1.jpg"}]}

        def get(url, **kwargs):
            return response(screenshots if url.endswith("/screenshots") else details)
        session.get.side_effect = get

        data = provider.get_by_provider_data_id("3328")
        assert data.title == "The Witcher 3"
        assert data.description == "Plain text"
        assert data.rating == 90
        assert data.average_playtime == 46 * 60
        assert data.age_rating == 17
        assert data.url_websites == ["https://thewitcher.com"]
        assert data.url_screenshots == ["https://media.rawg.io/1.jpg"]
        assert len(data.tags) == 10
        assert session.get.call_args_list[0].kwargs["params"]["key"] == "key"

    def test_not_found(self, provider, session):
        session.get.return_value = response({}, status_code=404)
        with pytest.raises(NotFoundException):
            provider.get_by_provider_data_id("1")

    def test_search(self, provider, session):
        session.get.return_value = response({"results": [{"id": 9, "name": "Celeste", "released": "2018-01-25"}]})
        results = provider.search("celeste")
        assert [(r.provider_data_id, r.title) for r in results] == [("9", "Celeste")]
        assert results[0].release_date.year == 2018

    def test_http_error_raises_provider_exception(self, provider, session):
        session.get.return_value = response({}, status_code=500)
        with pytest.raises(ProviderException):
            provider.search("celeste")
