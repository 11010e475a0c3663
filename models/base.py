"""
Declarative base shared by all models.
"""
from sqlalchemy.orm import declarative_base

# Base class for models
Base = declarative_base()
