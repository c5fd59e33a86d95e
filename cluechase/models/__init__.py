"""
Database extension and model registry.

``db`` is bound to the Flask app in ``create_app``; every model module
imports it from here.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
