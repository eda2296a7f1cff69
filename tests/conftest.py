"""
Pytest fixtures and configuration for Ludoteca tests
"""
import copy
import os
import sys
import pytest
from unittest.mock import MagicMock

# Add app directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'app')))

from constants import DEFAULT_SETTINGS  # noqa: E402
from metadata_providers import MetadataProvider, ProviderGameMetadata, ProviderSearchResult  # noqa: E402


class FakeProvider(MetadataProvider):
    """In-memory metadata provider"""

    def __init__(self, slug, priority, records=None, enabled=True):
        super().__init__(priority=priority, enabled=enabled, request_interval_ms=0)
        self.slug = slug
        self.name = slug.upper()
        self.records = records or {}
        self.search_calls = []
        self.fetch_calls = []

    def search(self, query):
        self.search_calls.append(query)
        return [
            ProviderSearchResult(provider_data_id=data_id, title=record.title)
            for data_id, record in self.records.items()
            if query.lower() in (record.title or "").lower()
        ]

    def get_by_provider_data_id(self, provider_data_id):
        self.fetch_calls.append(provider_data_id)
        return self.records[provider_data_id]


@pytest.fixture
def fake_provider():
    """Factory for in-memory providers"""
    def factory(slug, priority, records=None, enabled=True):
        return FakeProvider(slug, priority, records=records, enabled=enabled)
    return factory


@pytest.fixture
def provider_record():
    """Factory for provider payloads"""
    def factory(provider_data_id, **fields):
        return ProviderGameMetadata(provider_data_id=str(provider_data_id), **fields)
    return factory


@pytest.fixture
def games_dir(tmp_path):
    """Empty games directory"""
    path = tmp_path / "games"
    path.mkdir()
    return path


@pytest.fixture
def test_settings(tmp_path, games_dir):
    """Settings bound to a temporary games directory and SQLite file"""
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    settings['games']['path'] = str(games_dir)
    settings['games']['index_interval_in_minutes'] = 0
    settings['database']['uri'] = 'sqlite:///' + str(tmp_path / 'test.db')
    settings['testing']['mock_files'] = False
    return settings


@pytest.fixture
def app(test_settings):
    """Flask app on a temporary SQLite database, no providers registered"""
    from app import create_app
    from db import db

    flask_app = create_app(test_settings, register_default_providers=False)
    yield flask_app

    flask_app.metadata_service.job_queue.shutdown(wait=True)
    with flask_app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def app_ctx(app):
    """Pushed app context"""
    with app.app_context():
        yield app


@pytest.fixture
def metadata_service_mock():
    """Metadata service double for reconciler tests"""
    service = MagicMock()
    service.add_merge_job.return_value = True
    return service


@pytest.fixture
def make_game(app_ctx):
    """Create a Game row directly"""
    from db import db, Game
    from filename_parser import generate_sort_title

    def factory(**fields):
        fields.setdefault('file_path', f"/files/{fields.get('title', 'Game')}.zip")
        fields.setdefault('title', 'Game')
        fields.setdefault('sort_title', generate_sort_title(fields['title']))
        fields.setdefault('size', 100)
        fields.setdefault('type', 'UNDETECTABLE')
        fields.setdefault('early_access', False)
        game = Game(**fields)
        db.session.add(game)
        db.session.commit()
        return game
    return factory

