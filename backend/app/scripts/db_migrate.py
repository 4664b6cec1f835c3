import logging
import subprocess
import sys

from sqlalchemy import create_engine, inspect

from app.core.database import DATABASE_URL

logger = logging.getLogger("secure-link.db-migrate")

CORE_TABLES = ("users", "files", "links")


def main():
    sync_url = DATABASE_URL.replace("+aiosqlite", "")
    engine = create_engine(sync_url)
    insp = inspect(engine)

    has_alembic = insp.has_table("alembic_version")
    existing_core_tables = any(insp.has_table(t) for t in CORE_TABLES)
    engine.dispose()

    # Tables created by the app's create_all on startup
    if existing_core_tables and not has_alembic:
        logger.info("Existing tables detected without alembic_version, stamping head")
        subprocess.run(["alembic", "stamp", "head"], check=True)
    else:
        logger.info("has_alembic=%s existing_core_tables=%s", has_alembic, existing_core_tables)

    subprocess.run(["alembic", "upgrade", "head"], check=True)

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[db-migrate] %(message)s")
    try:
        main()
    except subprocess.CalledProcessError as e:
        logger.error("Alembic command failed: %s", e)
        sys.exit(e.returncode)
    except Exception as e:
        logger.error("Unexpected error: %s", e)
        sys.exit(1)
