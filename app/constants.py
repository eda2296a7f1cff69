import os

APP_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_DIR = os.environ.get('LUDOTECA_CONFIG_DIR', os.path.join(APP_DIR, 'config'))
DB_FILE = os.path.join(CONFIG_DIR, 'ludoteca.db')
CONFIG_FILE = os.path.join(CONFIG_DIR, 'settings.yaml')

LUDOTECA_DB = 'sqlite:///' + DB_FILE

ENV_PREFIX = 'LUDOTECA'

SUPPORTED_FILE_FORMATS = [
    '.7z', '.xz', '.bz2', '.gz', '.tar', '.tgz', '.zip', '.rar',
    '.exe', '.msi', '.iso', '.img', '.sh',
]

DEFAULT_SETTINGS = {
    "games": {
        "path": "/files",
        "supported_file_formats": SUPPORTED_FILE_FORMATS,
        "search_recursive": True,
        "index_concurrency": 1,
        "index_interval_in_minutes": 60,
        "index_use_polling": False,
    },
    "metadata": {
        "ttl_in_days": 30,
        "merge_concurrency": 1,
        "igdb": {
            "enabled": True,
            "priority": 10,
            "request_interval_ms": 250,
            "client_id": None,
            "client_secret": None,
        },
        "rawg": {
            "enabled": True,
            "priority": 5,
            "request_interval_ms": 500,
            "api_key": None,
        },
    },
    "database": {
        "uri": LUDOTECA_DB,
    },
    "server": {
        "log_level": "info",
    },
    "testing": {
        "mock_files": False,
    },
}

# Settings keys redacted by get_censored_settings()
SENSITIVE_SETTINGS = ['client_id', 'client_secret', 'api_key', 'password']

# Reserved provider slugs
MERGED_METADATA_SLUG = 'ludoteca'
USER_METADATA_SLUG = 'user'

GAME_TYPE_WINDOWS_SETUP = 'WINDOWS_SETUP'
GAME_TYPE_WINDOWS_PORTABLE = 'WINDOWS_PORTABLE'
GAME_TYPE_LINUX_PORTABLE = 'LINUX_PORTABLE'
GAME_TYPE_UNDETECTABLE = 'UNDETECTABLE'

# Filename tokens that force a game type, e.g. "Game (W_P).zip"
GAME_TYPE_OVERRIDES = {
    'W_S': GAME_TYPE_WINDOWS_SETUP,
    'W_P': GAME_TYPE_WINDOWS_PORTABLE,
    'L_P': GAME_TYPE_LINUX_PORTABLE,
}

SETUP_EXTENSIONS = ['.exe', '.msi']
