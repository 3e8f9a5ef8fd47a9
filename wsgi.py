"""
WSGI entry point, also used by Flask-Migrate / Alembic.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-question-templates
    gunicorn wsgi:app
"""

from qrmfg import create_app

app = create_app()
