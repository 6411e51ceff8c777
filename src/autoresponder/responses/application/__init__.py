"""
Response Application Layer
==========================

Draft generation service and the knowledge-base repository interface.
"""

from autoresponder.responses.application.services import (
    ResponseGenerator,
    IKnowledgeBaseRepository,
)

__all__ = [
    "ResponseGenerator",
    "IKnowledgeBaseRepository",
]
