"""
Response Infrastructure Repositories
====================================

SQLAlchemy implementation of knowledge-base retrieval.
"""

from typing import List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import select, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from autoresponder.core import RepositoryException
from autoresponder.responses.application.services import IKnowledgeBaseRepository
from autoresponder.responses.domain import KnowledgeEntry, MAX_KNOWLEDGE_ENTRIES
from autoresponder.responses.infrastructure.models import KnowledgeBaseModel


def _to_entry(model: KnowledgeBaseModel) -> KnowledgeEntry:
    return KnowledgeEntry(
        id=str(model.id),
        title=model.title,
        content=model.content,
        category=model.category,
    )


class SQLAlchemyKnowledgeBaseRepository(IKnowledgeBaseRepository):
    """Keyword search over active articles (case-insensitive substring match)."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def search(self, keywords: Sequence[str], limit: int = MAX_KNOWLEDGE_ENTRIES) -> List[KnowledgeEntry]:
        if not keywords:
            return []

        conditions = []
        for keyword in keywords:
            pattern = f"%{keyword}%"
            conditions.append(KnowledgeBaseModel.title.ilike(pattern))
            conditions.append(KnowledgeBaseModel.content.ilike(pattern))

        stmt = (
            select(KnowledgeBaseModel)
            .where(KnowledgeBaseModel.is_active.is_(True))
            .where(or_(*conditions))
            .order_by(KnowledgeBaseModel.created_at.desc())
            .limit(limit)
        )

        try:
            result = await self._session.execute(stmt)
        except SQLAlchemyError as e:
            raise RepositoryException("Knowledge base search failed", details={"error": str(e)})

        return [_to_entry(model) for model in result.scalars().all()]

    async def create(
        self,
        title: str,
        content: str,
        category: Optional[str] = None,
        tags: Optional[List[str]] = None
    ) -> KnowledgeEntry:
        model = KnowledgeBaseModel(
            id=uuid4(),
            title=title,
            content=content,
            category=category,
            tags=list(tags or []),
            is_active=True,
        )

        try:
            self._session.add(model)
            await self._session.flush()
        except SQLAlchemyError as e:
            raise RepositoryException("Failed to store knowledge base entry", details={"error": str(e)})

        return _to_entry(model)
