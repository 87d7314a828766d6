"""Apply the data retention policies once.

Usage:
    python scripts/enforce_retention.py            # delete expired verification/prior auth records
    python scripts/enforce_retention.py --report   # only print the compliance report

Audit logs are never deleted here; they require manual review.
"""
import argparse
import asyncio
import json
import sys
from datetime import datetime, timedelta, timezone

from insurance_verification.api.dependencies import build_container
from insurance_verification.config.logging_config import setup_logging
from insurance_verification.config.settings import get_settings
from insurance_verification.reasoning.fake_classifier import FakeClassifier
from insurance_verification.storage.database import close_db, init_db


async def run(report_only: bool) -> int:
    settings = get_settings()
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)
    session_factory = await init_db(settings.database_url)
    # Retention never classifies; skip vendor credentials
    container = build_container(settings, session_factory, classifier=FakeClassifier(), channels=[])
    try:
        if not report_only:
            deleted = await container.compliance.enforce_retention()
            print(f"Deleted: {json.dumps(deleted)}")

        end = datetime.now(timezone.utc)
        report = await container.compliance.generate_compliance_report(end - timedelta(days=30), end)
        print(json.dumps(report.to_dict(), indent=2))
        return 0
    finally:
        await container.close()
        await close_db()


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--report", action="store_true", help="Print the compliance report without deleting")
    args = parser.parse_args()
    sys.exit(asyncio.run(run(report_only=args.report)))


if __name__ == "__main__":
    main()
