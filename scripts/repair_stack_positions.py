#!/usr/bin/env python3
"""
Repair Stack Positions Script

Reports clients whose backlog positions are not exactly 1..N (gaps,
duplicates, non-positive values) and, with --apply, renumbers them in
current order.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from app import create_app
from models import db, Client
from services.ranking_engine import check_density, compact_positions


def repair_stack_positions(dry_run=True, slug=None):
    """Check every client (or just `slug`); returns {slug: rows renumbered}."""
    app = create_app()
    repaired = {}

    with app.app_context():
        stmt = select(Client).order_by(Client.slug)
        if slug:
            stmt = stmt.where(Client.slug == slug)
        clients = list(db.session.scalars(stmt))

        for client in clients:
            report = check_density(client.id)
            if report.is_dense:
                continue

            print(f"⚠️  {client.slug}: {report.count} PBIs, "
                  f"missing={report.missing} duplicates={report.duplicates} "
                  f"out_of_range={report.out_of_range}")

            if dry_run:
                repaired[client.slug] = 0
                continue

            changed = compact_positions(client.id)
            repaired[client.slug] = changed
            print(f"   ✅ Renumbered {changed} PBIs")

        print()
        print(f"Checked {len(clients)} clients, {len(repaired)} needed repair")

    return repaired


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Check and repair PBI stack positions")
    parser.add_argument("--apply", action="store_true", help="Actually renumber (default is dry run)")
    parser.add_argument("--client", help="Only this client slug")

    args = parser.parse_args()

    print("=" * 60)
    print("Stack Position Repair")
    print("=" * 60)
    print(f"Dry run: {not args.apply}")
    print()

    repair_stack_positions(dry_run=not args.apply, slug=args.client)
