"""
Tests for the application factory and its wiring
"""
from unittest.mock import MagicMock, patch

from app import on_library_change, register_providers


class TestCreateApp:
    """Tests for create_app"""

    def test_components_are_wired(self, app):
        assert app.reconciler.metadata_service is app.metadata_service
        assert app.indexer.reconciler is app.reconciler
        assert app.indexing_scheduler.merge_queue is app.metadata_service.job_queue
        assert app.indexer.reindex_trigger == app.indexing_scheduler.trigger
        assert len(app.metadata_service.registry) == 0

    def test_settings_are_copied(self, app, test_settings):
        test_settings['games']['path'] = '/elsewhere'
        assert app.config['LUDOTECA_SETTINGS']['games']['path'] != '/elsewhere'

    def test_metrics_endpoint(self, app, make_game):
        make_game(title="Alpha")
        response = app.test_client().get('/api/metrics')
        assert response.status_code == 200
        body = response.get_data(as_text=True)
        assert 'ludoteca_library_games_total 1.0' in body


class TestRegisterProviders:
    """Tests for register_providers"""

    def test_only_configured_providers_are_registered(self, test_settings):
        service = MagicMock()
        register_providers(service, test_settings)
        service.register_provider.assert_not_called()

        test_settings['metadata']['rawg']['api_key'] = 'key'
        test_settings['metadata']['igdb']['client_id'] = 'id'
        test_settings['metadata']['igdb']['client_secret'] = 'secret'
        register_providers(service, test_settings)
        slugs = [c.args[0].slug for c in service.register_provider.call_args_list]
        assert slugs == ['igdb', 'rawg']


class TestLibraryChangeCallback:
    """Tests for the watcher callback"""

    def test_burst_collapses_into_one_rescan(self):
        app = MagicMock()
        with patch('app.WATCHER_DEBOUNCE_SECONDS', 0.01):
            callback = on_library_change(app)
        events = [MagicMock(type='created', src_path='/files/a.zip', dest_path=None)] * 3
        callback(events[:1])
        callback(events[1:])

        import time
        deadline = time.time() + 5
        while not app.indexing_scheduler.trigger_async.called and time.time() < deadline:
            time.sleep(0.01)
        time.sleep(0.1)
        app.indexing_scheduler.trigger_async.assert_called_once()
