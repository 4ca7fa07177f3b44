"""Create the custom domain tables (deploy-time alternative to `alembic upgrade head`)"""
import argparse
import logging

from app.db.base_class import Base
from app.db.session import SchemaNotReadyError, engine, verify_schema
# Import all models so they are registered with Base.metadata
import app.models  # noqa: F401

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_tables(check_only: bool = False) -> int:
    if not check_only:
        logger.info("Creating custom domain tables on %s ...", engine.url.render_as_string(hide_password=True))
        Base.metadata.create_all(bind=engine)
    try:
        verify_schema(engine)
    except SchemaNotReadyError as e:
        logger.error("%s", e)
        return 1
    logger.info("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--check", action="store_true", help="only verify that the tables exist")
    args = parser.parse_args()
    raise SystemExit(create_tables(check_only=args.check))
