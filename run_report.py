import argparse
import logging
import sys

from dotenv import load_dotenv

# Settings are read at import time, so .env must be loaded first
load_dotenv()

from app.core.config import settings  # noqa: E402
from app.data_access.database import DataSource, sqlite_url  # noqa: E402
from app.services.report_service import ReportService  # noqa: E402


def run_report(database_path: str | None = None) -> int:
    """Builds the full Chinook report and prints it as JSON.

    Uses the given SQLite file (opened read-only) or, when omitted, the
    DATABASE_URL setting.

    Returns:
        int: 0 when every section succeeded, 1 otherwise.
    """
    url = sqlite_url(database_path) if database_path else settings.DATABASE_URL
    data_source = DataSource(url)
    try:
        report = ReportService(data_source).run()
    finally:
        data_source.dispose()

    print(report.model_dump_json(indent=2))
    failed = [s.name for s in report.sections if s.status == "failed"]
    if failed:
        logging.getLogger(__name__).warning(f"Failed sections: {', '.join(failed)}")
        return 1
    return 0

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Print the Chinook business report as JSON.")
    parser.add_argument("database", nargs="?", help="Path to the Chinook SQLite file")
    args = parser.parse_args()

    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s [%(levelname)s] %(message)s",
        handlers=[logging.StreamHandler()]
    )
    sys.exit(run_report(args.database))
