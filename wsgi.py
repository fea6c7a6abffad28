"""
WSGI entry point, also used by Flask-Migrate / Alembic.

Usage:
    gunicorn wsgi:app
    FLASK_APP=wsgi.py flask db upgrade
"""

from sitebook import create_app

app = create_app()
