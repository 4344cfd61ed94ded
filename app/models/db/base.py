"""
Base model for the database
"""

from sqlalchemy.orm import declarative_base

Base = declarative_base()
