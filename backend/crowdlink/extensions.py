"""
extensions.py — Flask extension singletons.

Creates SQLAlchemy and marshmallow as module-level objects so models and
routes can import them without circular imports. The app factory attaches
them with init_app(app).

    from crowdlink.extensions import db, ma

Validation schemas in crowdlink/schemas/ inherit from marshmallow.Schema
directly, NOT ma.Schema: ma.Schema needs an application context and the
unit tests instantiate schemas without one.
"""

from flask_marshmallow import Marshmallow
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

ma = Marshmallow()
