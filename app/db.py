from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event, inspect
import logging
from utils import now_utc

# Retrieve main logger
logger = logging.getLogger("main")

db = SQLAlchemy()


def init_db(app):
    with app.app_context():
        engine = db.engine
        if engine.dialect.name == "sqlite":
            # Ensure foreign keys, WAL mode, and timeout are set when connection is opened
            @event.listens_for(engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs (relation upserts) behave
                dbapi_connection.isolation_level = None
                cursor = dbapi_connection.cursor()
                cursor.execute("PRAGMA foreign_keys=ON;")
                # Enable WAL mode for concurrent scan workers
                cursor.execute("PRAGMA journal_mode=WAL;")
                # Increase timeout to 30 seconds to handle contention
                cursor.execute("PRAGMA busy_timeout=30000;")
                cursor.close()

            @event.listens_for(engine, "begin")
            def do_begin(conn):
                conn.exec_driver_sql("BEGIN")

        inspector = inspect(engine)
        if not inspector.has_table("games"):
            logger.info("Initializing database tables...")
        db.create_all()


# Models register themselves on `db`; imported last so `from db import Game` keeps working
from models import *  # noqa: E402,F401,F403
