"""Synchronize an intake session snapshot from a JSON file.

With --dry-run the file is only normalized and the extracted obligations are
printed; nothing is written.
"""

import argparse
import json
from pathlib import Path

from payplan.common.db import SessionLocal
from payplan.common.logging import configure_logging
from payplan.services.planner.extractor import extract_candidates
from payplan.services.planner.normalizer import normalize_session
from payplan.services.planner.service import PlannerService


def _candidate_row(candidate) -> dict:
    return {
        "identity_key": candidate.identity_key,
        "payment_type": candidate.payment_type,
        "quarter": candidate.quarter,
        "due_date": candidate.due_date.isoformat() if candidate.due_date else None,
        "amount": str(candidate.amount) if candidate.amount is not None else None,
        "tax_year": candidate.tax_year,
    }


def main() -> None:
    """CLI entrypoint for session imports."""

    parser = argparse.ArgumentParser(description="Import an intake session snapshot.")
    parser.add_argument("path", type=Path)
    parser.add_argument("--owner-id", required=True)
    parser.add_argument("--batch-id", required=True)
    parser.add_argument("--dry-run", action="store_true")
    args = parser.parse_args()

    raw = json.loads(args.path.read_text(encoding="utf-8"))
    if isinstance(raw, dict) and isinstance(raw.get("snapshot"), dict):
        raw = raw["snapshot"]

    if args.dry_run:
        session = normalize_session(raw)
        preview = {
            client.client_id: [_candidate_row(candidate) for candidate in extract_candidates(client.data)]
            for client in session.clients
        }
        print(json.dumps(preview, indent=2))
        return

    configure_logging()
    result = PlannerService(SessionLocal).sync_session(args.owner_id, args.batch_id, raw)
    print(json.dumps(result.model_dump(), indent=2))


if __name__ == "__main__":
    main()
