#!/usr/bin/env python3
"""Create the scheduling tables (users, pets, services, availability,
appointments, daycare, activity logs) in the database named by DATABASE_URL.

Existing tables are left alone; run ``seed_demo.py`` afterwards for sample data.
"""
import sys
from pathlib import Path

# Run from a checkout without installing the package.
sys.path.insert(0, str(Path(__file__).parent.parent))

from petcare import create_app
from petcare.extensions import db


def init_database():
    app = create_app()
    with app.app_context():
        db.create_all()
        tables = ", ".join(sorted(db.metadata.tables))
        print(f"Tables ready on {app.config['SQLALCHEMY_DATABASE_URI']}: {tables}")


if __name__ == "__main__":
    init_database()
