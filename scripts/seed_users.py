#!/usr/bin/env python3
"""Seed an admin and a few worker accounts for local development.

Usage:
    python scripts/seed_users.py [password]
"""

import sys
import os

# Add parent directory to path to import dispatch modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dispatch import create_app, db  # noqa: E402
from dispatch.models import User  # noqa: E402

USERS = [
    {'username': 'admin', 'user_type': 'admin'},
    {'username': 'worker_one', 'user_type': 'worker'},
    {'username': 'worker_two', 'user_type': 'worker'},
]


def seed_users(password):
    """Create missing accounts; existing usernames are left alone."""
    created = 0
    for data in USERS:
        if User.query.filter_by(username=data['username']).first():
            print(f"  - {data['username']} already exists")
            continue
        user = User(**data)
        user.set_password(password)
        db.session.add(user)
        created += 1
        print(f"  ✓ {data['username']} ({data['user_type']})")
    db.session.commit()
    return created


if __name__ == '__main__':
    password = sys.argv[1] if len(sys.argv) > 1 else 'changeme'
    app = create_app(os.getenv('FLASK_ENV', 'development'))
    with app.app_context():
        count = seed_users(password)
    print(f"\nCreated {count} account(s).")
