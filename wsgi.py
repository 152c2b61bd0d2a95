"""
WSGI entry point (gunicorn) and Flask-Migrate / Alembic entry point.

Usage:
    gunicorn wsgi:app
    flask db upgrade
    flask run-job auto_lock_sweep
"""

from docflow import create_app

app = create_app()
