"""
Response Infrastructure Models
==============================

SQLAlchemy ORM models for the knowledge base used to ground drafts.
"""

from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID, uuid4

from sqlalchemy import String, DateTime, Boolean, Text, Uuid, JSON
from sqlalchemy.orm import Mapped, mapped_column

from autoresponder.infrastructure.database import Base


class KnowledgeBaseModel(Base):
    """
    Database model for a knowledge-base article.

    Maps to the 'knowledge_base' table.
    """
    __tablename__ = "knowledge_base"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    tags: Mapped[List[str]] = mapped_column(JSON, nullable=False, default=list)

    # Inactive entries are never retrieved
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc)
    )
