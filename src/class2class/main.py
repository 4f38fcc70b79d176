"""Command-line entry point for the program store.

Prints partner dashboard reports straight from the configured storage
medium, without going through the HTTP API.
"""

import argparse
import logging
from typing import List, Optional

from class2class.config import EXCLUDED_INSTITUTION_IDS, STORAGE_DATABASE_URL
from class2class.core.database import create_session_factory
from class2class.core.logging_config import setup_logging
from class2class.utils.entity_store import EntityStore
from class2class.utils.program_metrics import aggregate_program_metrics, build_partner_analytics
from class2class.utils.program_selectors import build_program_summaries_for_partner
from class2class.utils.storage import KeyValueStorage

logger = logging.getLogger(__name__)


def print_partners(store: EntityStore) -> None:
    partners = store.get_all("partners")
    if not partners:
        print("No partners stored.")
        return
    for partner in partners:
        print(f"{partner.id}  {partner.organization_name} ({partner.country or '-'})")


def print_report(store: EntityStore, partner_id: str, include_related: bool) -> int:
    """Print program totals and country impact for one partner.

    Returns:
        Process exit code.
    """
    db = store.database
    partner = next((p for p in db.partners if p.id == partner_id), None)
    if partner is None:
        print(f"Partner {partner_id} not found.")
        return 1

    summaries = build_program_summaries_for_partner(
        db, partner_id, include_related, EXCLUDED_INSTITUTION_IDS
    )
    totals = aggregate_program_metrics(summaries)
    analytics = build_partner_analytics(
        summaries, db=db, partner=partner, excluded_institution_ids=EXCLUDED_INSTITUTION_IDS
    )

    print("=" * 70)
    print(f"  {partner.organization_name}")
    print("=" * 70)
    print(f"Programs:      {totals.total_programs} ({totals.active_programs} active)")
    print(f"Co-partners:   {totals.co_partners}")
    print(f"Coordinators:  {totals.coordinators}")
    print(f"Institutions:  {totals.institutions}")
    print(f"Teachers:      {totals.teachers}")
    print(f"Students:      {totals.students}")
    print(f"Projects:      {totals.projects}")
    print(f"Pending invites: {totals.pending_invitations}")
    print()

    for summary in summaries:
        metrics = summary.metrics
        print(
            f"- {summary.program.display_title or summary.program.name}: "
            f"{metrics.institution_count} institutions, "
            f"{metrics.student_count} students, {metrics.teacher_count} teachers"
        )
    if analytics.countries:
        print()
        print("Country impact:")
        for country in analytics.countries:
            print(
                f"  {country.flag} {country.country_label}: "
                f"{country.institutions} institutions, {country.students} students, "
                f"engagement {country.engagement_score:.1f}"
            )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Class2Class program store tools.")
    parser.add_argument(
        "--database-url",
        default=STORAGE_DATABASE_URL,
        help="SQLAlchemy URL of the storage medium.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("partners", help="List stored partners.")
    report = subparsers.add_parser("report", help="Print a partner dashboard report.")
    report.add_argument("partner_id")
    report.add_argument(
        "--hosted-only",
        action="store_true",
        help="Leave out programs the partner only co-hosts.",
    )
    subparsers.add_parser("reset", help="Empty every table.")
    args = parser.parse_args(argv)

    setup_logging()
    store = EntityStore(KeyValueStorage(create_session_factory(args.database_url)))

    if args.command == "partners":
        print_partners(store)
        return 0
    if args.command == "report":
        return print_report(store, args.partner_id, not args.hosted_only)
    store.reset()
    print("Store reset.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
