import os

APP_DIR = os.path.dirname(os.path.abspath(__file__))
CONFIG_DIR = os.environ.get('BUNDLECACHE_CONFIG_DIR', os.path.join(APP_DIR, 'config'))
DB_FILE = os.path.join(CONFIG_DIR, 'bundlecache.db')
CONFIG_FILE = os.path.join(CONFIG_DIR, 'settings.yaml')
ALEMBIC_DIR = os.path.join(APP_DIR, 'migrations')

BUNDLECACHE_DB = os.environ.get('BUNDLECACHE_DB', 'sqlite:///' + DB_FILE)

STORE_HOST = 'store.steampowered.com'
STORE_BASE_URL = f'https://{STORE_HOST}'

# Age-gate cookies so mature bundles render instead of the verification wall
STORE_COOKIES = {
    'birthtime': '0',
    'mature_content': '1',
}

# Selectors consumed from the bundle page
PAGE_HEADER_SELECTOR = '.pageheader'
APP_ID_ATTRIBUTE = 'data-ds-appid'

LAST_UPDATE_FORMAT = '%Y/%m/%d %H:%M:%S'

DEFAULT_SETTINGS = {
    "database": {
        "uri": BUNDLECACHE_DB,
    },
    "store": {
        "base_url": STORE_BASE_URL,
        "country": "us",
        "language": "en",
        "timeout": 15,
        "user_agent": "bundlecache/1.0",
    },
    "staleness": {
        "max_age_days": 6,
        "nameless_max_age_days": 1,
    },
    "bundles": {
        "prune_stale_apps": True,
        "max_batch_size": 100,
    },
    "worker": {
        "drain_batch_size": 25,
        "drain_interval_minutes": 5,
    },
}
