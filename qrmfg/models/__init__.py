"""
Plant Questionnaire Platform
Model package — owns the shared Flask-SQLAlchemy ``db`` instance.

Usage:
    from qrmfg.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
