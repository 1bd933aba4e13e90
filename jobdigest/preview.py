"""Preview which jobs the targeting engine would pick, without sending anything.

Usage:
    jobdigest-preview --contact-id 42
    jobdigest-preview --all-contacts --limit 200
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from dotenv import load_dotenv

from jobdigest.config.exceptions import ConfigurationError
from jobdigest.config.loader import load_config
from jobdigest.domain.models import Contact, JobPosting
from jobdigest.logging.config import configure_logging
from jobdigest.persistence.database import close_database, get_session, init_database
from jobdigest.persistence.exceptions import PersistenceError, RecordNotFoundError
from jobdigest.persistence.repositories import ContactRepository, JobRepository
from jobdigest.pipeline.segmentation import build_personalized_digests
from jobdigest.targeting import JobSelector
from jobdigest.utils.timestamps import utc_now


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Print the digest the targeting engine would build for contacts"
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("--contact-id", type=int, help="Preview a single contact")
    target.add_argument("--all-contacts", action="store_true", help="Preview every contact")
    parser.add_argument("--config", type=Path, default=None, help="Path to configuration file")
    parser.add_argument(
        "--limit", type=int, default=None, help="Override the number of pending jobs loaded"
    )
    return parser


def render_preview(
    contacts: Sequence[Contact],
    jobs: Sequence[JobPosting],
    selector: JobSelector,
    out: Optional[TextIO] = None,
) -> None:
    """Write each contact's strategy and jobs, then a summary, to ``out`` (stdout by default)."""
    out = out or sys.stdout
    plan = build_personalized_digests(contacts, jobs, selector)

    for contact in contacts:
        out.write(f"\nContact {contact.id}: {contact.full_name} <{contact.email}>\n")
        out.write(
            f"  branch={contact.branch_raw or '-'} experience={contact.experience_raw or '-'}\n"
        )
        digest = plan.jobs_by_contact.get(contact.id)
        if not digest:
            out.write("  strategy: no-match\n")
            continue
        out.write(f"  strategy: {plan.strategies_by_contact[contact.id].value}\n")
        for number, job in enumerate(digest, 1):
            company = f" @ {job.company_name}" if job.company_name else ""
            out.write(
                f"  {number}. [{job.job_key}] {job.title}{company} "
                f"(experience: {job.experience_raw or '-'})\n"
            )

    total_selected = sum(len(jobs) for jobs in plan.jobs_by_contact.values())
    out.write("\nSummary\n")
    out.write(f"  Contacts with jobs:    {len(plan.contacts_to_send)}\n")
    out.write(f"  Contacts without jobs: {len(plan.skipped_contacts)}\n")
    out.write(f"  Total jobs selected:   {total_selected}\n")
    out.write(f"  Unique jobs:           {plan.unique_job_count}\n")


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        app_config, env_config = load_config(args.config, load_environment=False)
    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 2

    configure_logging(level="WARNING", format_type=app_config.logging.format)

    digest_config = app_config.digest
    selector = JobSelector(
        digest_limit=digest_config.size,
        min_branch_token_length=digest_config.min_branch_token_length,
    )
    created_after = digest_config.created_after(utc_now())

    try:
        init_database(env_config.database_url)
        with get_session() as session:
            jobs = JobRepository(session).fetch_pending_jobs(
                args.limit or digest_config.job_fetch_limit, created_after=created_after
            )
            contact_repo = ContactRepository(session)
            if args.contact_id is not None:
                contacts = [contact_repo.get_contact(args.contact_id)]
            else:
                contacts = contact_repo.fetch_contacts(limit=digest_config.contact_fetch_limit)
    except RecordNotFoundError as e:
        print(str(e), file=sys.stderr)
        return 1
    except PersistenceError as e:
        print(f"Database error: {e}", file=sys.stderr)
        return 1
    finally:
        close_database()

    print(f"Loaded {len(jobs)} pending job(s) and {len(contacts)} contact(s)")
    render_preview(contacts, jobs, selector)
    return 0


if __name__ == "__main__":
    sys.exit(main())
