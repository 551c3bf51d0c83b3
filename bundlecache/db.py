from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate, stamp
from sqlalchemy import event, inspect
from sqlalchemy.dialects import postgresql, sqlite
import logging

from bundlecache.constants import ALEMBIC_DIR

# Retrieve main logger
logger = logging.getLogger("main")

db = SQLAlchemy()
migrate = Migrate(directory=ALEMBIC_DIR)


def dialect_insert(session, table):
    """
    Return an INSERT construct for the session's dialect supporting
    on_conflict_do_update / on_conflict_do_nothing (SQLite and PostgreSQL).
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(table)
    if dialect == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"Upserts are not supported on the '{dialect}' dialect")


def _set_sqlite_pragma(dbapi_connection, connection_record):
    import sqlite3

    if not isinstance(dbapi_connection, sqlite3.Connection):
        return

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON;")
    # Enable WAL mode for better concurrent access
    cursor.execute("PRAGMA journal_mode=WAL;")
    # Increase timeout to 30 seconds to handle contention
    cursor.execute("PRAGMA busy_timeout=30000;")
    cursor.close()


def init_db(app):
    # Register the models on db.metadata
    import bundlecache.models  # noqa: F401

    migrate.init_app(app, db)

    with app.app_context():
        # Ensure foreign keys, WAL mode, and timeout are set when connection is opened
        if not event.contains(db.engine, "connect", _set_sqlite_pragma):
            event.listen(db.engine, "connect", _set_sqlite_pragma)

        inspector = inspect(db.engine)
        if not inspector.has_table("bundles"):
            logger.info("Initializing database tables...")
            db.create_all()
            stamp(revision="head")
            logger.info("Database created and stamped to the latest migration version.")
        else:
            # Ensure new tables are created even if DB exists
            db.create_all()
