"""
Response Infrastructure Layer
=============================

Knowledge-base ORM model and its SQLAlchemy repository.
"""

from autoresponder.responses.infrastructure.models import KnowledgeBaseModel
from autoresponder.responses.infrastructure.repositories import SQLAlchemyKnowledgeBaseRepository

__all__ = [
    "KnowledgeBaseModel",
    "SQLAlchemyKnowledgeBaseRepository",
]
