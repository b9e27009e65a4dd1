"""Drop every table of the configured database."""
import argparse
import logging

from dotenv import load_dotenv

from ..db import drop_schema, make_engine
from ..logging_config import setup_logging

logger = logging.getLogger(__name__)


def main(argv=None) -> int:
    load_dotenv()
    from ..config import Settings

    settings = Settings()
    parser = argparse.ArgumentParser(description="Drop all welfare tables")
    parser.add_argument("--database-url", default=settings.database_url)
    parser.add_argument("--yes", action="store_true", help="don't ask for confirmation")
    args = parser.parse_args(argv)

    setup_logging(settings.log_level)
    if not args.yes:
        answer = input(f"Drop all tables on {args.database_url}? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            logger.info("Aborted")
            return 1

    drop_schema(make_engine(args.database_url))
    logger.info("Database cleared")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
