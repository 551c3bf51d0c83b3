"""
bundlecache - Steam bundle read-through cache
Application Factory
"""
import flask.cli
import structlog
from flask import Flask

from bundlecache.db import db, init_db
from bundlecache.exceptions import register_exception_handlers
from bundlecache.metrics import init_metrics
from bundlecache.routes.bundles import bundles_bp
from bundlecache.settings import load_settings, merge_settings, verify_settings
from bundlecache.utils import configure_logging

flask.cli.show_server_banner = lambda *args: None

logger = structlog.get_logger('main')


def create_app(config=None, settings=None):
    """
    Build the Flask application.

    ``settings`` overrides the YAML settings file (it is merged over the
    defaults); ``config`` is applied to the Flask config last.
    """
    configure_logging()

    app_settings = merge_settings(settings) if settings is not None else load_settings()
    success, errors = verify_settings(app_settings)
    if not success:
        raise ValueError(f"Invalid settings: {errors}")

    app = Flask(__name__)
    app.config['SQLALCHEMY_DATABASE_URI'] = app_settings['database']['uri']
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.config['BUNDLECACHE_SETTINGS'] = app_settings
    if config:
        app.config.update(config)

    db.init_app(app)
    init_db(app)

    register_exception_handlers(app)
    init_metrics(app)
    app.register_blueprint(bundles_bp)

    logger.info("bundlecache initialized", database=app.config['SQLALCHEMY_DATABASE_URI'].split('://')[0])
    return app


if __name__ == '__main__':
    import os

    port = int(os.environ.get('PORT', 8000))
    create_app().run(host='0.0.0.0', port=port)
