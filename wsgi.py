"""
WSGI entry point.

Usage:
    gunicorn wsgi:app
    APP_ENV=development flask --app wsgi run
"""

from cluechase import create_app

app = create_app()
