#!/usr/bin/env python3
"""Seed a database with sample contacts and pending jobs.

Usage:
    python scripts/seed_sample_data.py
    python scripts/seed_sample_data.py --database sqlite:////tmp/digest.db --fixtures my_data.yaml
"""

import argparse
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import yaml  # noqa: E402
from dotenv import load_dotenv  # noqa: E402

from jobdigest.config.environment import DEFAULT_DATABASE_URL  # noqa: E402
from jobdigest.domain.models import JobPosting  # noqa: E402
from jobdigest.persistence.database import close_database, get_session, init_database  # noqa: E402
from jobdigest.persistence.repositories import ContactRepository, JobRepository  # noqa: E402
from jobdigest.utils.timestamps import utc_now  # noqa: E402


def main() -> int:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Seed sample digest data")
    parser.add_argument("--database", default=DEFAULT_DATABASE_URL, help="SQLAlchemy database URL")
    parser.add_argument(
        "--fixtures",
        type=Path,
        default=Path("tests/fixtures/sample_data.yaml"),
        help="YAML file with 'contacts' and 'jobs' lists",
    )
    args = parser.parse_args()

    with open(args.fixtures, "r") as f:
        data = yaml.safe_load(f) or {}

    now = utc_now()
    init_database(args.database)
    try:
        with get_session() as session:
            contact_repo = ContactRepository(session)
            for contact in data.get("contacts", []):
                contact_repo.add(
                    full_name=contact["full_name"],
                    email=contact["email"],
                    branch=contact.get("branch"),
                    experience=contact.get("experience"),
                    mobile=contact.get("mobile"),
                    telegram_chat_id=contact.get("telegram_chat_id"),
                    created_at=now,
                )

            job_repo = JobRepository(session)
            for job in data.get("jobs", []):
                job_repo.save_job(
                    JobPosting(
                        id=str(job["id"]),
                        source=job.get("source", "jobs"),
                        title=job["title"],
                        company_name=job.get("company_name"),
                        location=job.get("location"),
                        job_type=job.get("job_type"),
                        category=job.get("category"),
                        location_type=job.get("location_type"),
                        experience_raw=job.get("experience"),
                        skills=tuple(job.get("skills", [])),
                        is_remote=job.get("is_remote"),
                        apply_url=job.get("apply_url"),
                        created_at=now,
                    )
                )
    finally:
        close_database()

    print(
        f"Seeded {len(data.get('contacts', []))} contact(s) and "
        f"{len(data.get('jobs', []))} job(s) into {args.database}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
