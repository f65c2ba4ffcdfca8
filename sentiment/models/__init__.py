"""
Employee Sentiment Survey Platform
SQLAlchemy models package.

All models share the single ``db`` extension instance created here and
bound to the Flask app in ``sentiment.create_app``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
