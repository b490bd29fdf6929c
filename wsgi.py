"""
WSGI entry point (gunicorn / flask CLI).

Usage:
    gunicorn wsgi:app
    flask --app wsgi db upgrade
    flask --app wsgi create-admin admin admin@example.com
"""

from app import create_app

app = create_app()
