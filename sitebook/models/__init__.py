"""
SiteBook
Shared SQLAlchemy handle.

All model modules import ``db`` from here so that the app factory can bind
a single extension instance via ``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
