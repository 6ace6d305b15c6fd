"""Run the notification dispatcher once or on a fixed interval.

Safe to run from several hosts at once: each pass claims its own batch.
"""

import argparse
import json
import time

from payplan.common.db import SessionLocal
from payplan.common.logging import configure_logging, logger
from payplan.services.notification.service import NotificationService


def main() -> None:
    """CLI entrypoint for the dispatcher loop."""

    parser = argparse.ArgumentParser(description="Deliver due quarterly instruction emails.")
    parser.add_argument("--interval", type=float, default=0.0, help="seconds between passes; 0 runs once")
    parser.add_argument("--limit", type=int, default=None, help="max records claimed per pass")
    args = parser.parse_args()

    configure_logging()
    service = NotificationService(SessionLocal)
    while True:
        report = service.process_due(limit=args.limit)
        if args.interval <= 0:
            print(json.dumps(report.model_dump(), indent=2))
            return
        try:
            time.sleep(args.interval)
        except KeyboardInterrupt:
            logger.info("dispatcher_stopped")
            return


if __name__ == "__main__":
    main()
