#!/usr/bin/env python3
"""
Seed demo data for local development.
Creates a Flowency admin, one client with a client admin and a short backlog.
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from app import create_app
from models import db, Client, User, UserRole
from services import client_service, ranking_engine

DEMO_PASSWORD = 'DemoPassword123!'

DEMO_BACKLOG = [
    ("Customer login with magic link", "feature", "in_progress", "M"),
    ("Invoice PDF totals off by one cent", "bug", "todo", "S"),
    ("Tighten spacing on pricing page", "tweak", "todo", "XS"),
    ("Self-serve data export", "feature", "todo", "L"),
    ("Dark mode", "idea", "todo", None),
]


def _get_or_create_user(email, name, role, client_id=None):
    user = db.session.scalar(select(User).where(User.email == email))
    if user:
        return user, False

    user = User(email=email, name=name, role=role, client_id=client_id)
    user.set_password(DEMO_PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user, True


def seed_demo_data():
    app = create_app()

    with app.app_context():
        admin, created = _get_or_create_user('admin@flowency.test', 'Flowency Admin', UserRole.FLOWENCY_ADMIN.value)
        print(f"{'✅ Created' if created else 'ℹ️  Found'} admin: {admin.email}")

        client = db.session.scalar(select(Client).where(Client.slug == 'acme'))
        if client:
            print(f"ℹ️  Client already exists: {client.slug} - skipping backlog")
            return client

        client = client_service.create_client('Acme', slug='acme', description='Demo client')
        print(f"✅ Created client: {client.slug}")

        client_admin, _ = _get_or_create_user('lead@acme.test', 'Acme Lead', UserRole.CLIENT_ADMIN.value, client.id)
        print(f"✅ Created client admin: {client_admin.email}")

        for title, pbi_type, status, effort in DEMO_BACKLOG:
            pbi = ranking_engine.append_pbi(
                client.id,
                title=title,
                type=pbi_type,
                status=status,
                effort=effort,
                created_by_id=client_admin.id,
            )
            print(f"   #{pbi.stack_position} {pbi.title}")

        print()
        print(f"Password for demo users: {DEMO_PASSWORD}")
        return client


if __name__ == "__main__":
    seed_demo_data()
