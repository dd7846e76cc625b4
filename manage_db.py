#!/usr/bin/env python3
"""
Database management script for deployment.
Run this during the build/deployment pipeline to create missing tables.
"""
import sys

from sqlalchemy.exc import SQLAlchemyError

from league.app import create_app
from league.models import db


def deploy():
    """Run deployment tasks."""
    print("Creating database tables...")
    app = create_app()
    with app.app_context():
        try:
            db.create_all()
            print("✓ Database tables are up to date.")
        except SQLAlchemyError as e:
            print(f"Error creating tables: {e}")
            sys.exit(1)


if __name__ == '__main__':
    deploy()
