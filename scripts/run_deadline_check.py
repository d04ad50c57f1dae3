"""
Run the deadline reminder job once, for system cron.

    0 8 * * *  python scripts/run_deadline_check.py
    0 * * * *  python scripts/run_deadline_check.py --passed-only
"""
import sys
import os
import asyncio
import argparse
import json

# Add parent directory to path to import database
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from logging_config import setup_logging, get_logger, job_context
from database import client, db
from automations.deadline_checker import check_task_deadlines, check_passed_deadlines

logger = get_logger("run_deadline_check")


async def main(passed_only: bool) -> dict:
    with job_context("cron_passed_check" if passed_only else "cron_deadline_check"):
        if passed_only:
            return await check_passed_deadlines(db)
        return await check_task_deadlines(db)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Send task deadline reminders")
    parser.add_argument("--passed-only", action="store_true", help="only report tasks whose deadline already passed")
    args = parser.parse_args()

    setup_logging()
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        result = loop.run_until_complete(main(args.passed_only))
    finally:
        client.reset()
    print(json.dumps(result))
    sys.exit(0 if result.get("success") else 1)
