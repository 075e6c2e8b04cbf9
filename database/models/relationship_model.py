# database/models/relationship_model.py
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from database.db import Base


class Relationship(Base):
    """Typed edge from a paper to a concept name, anchored to exactly one paper."""
    __tablename__ = "relationships"
    __table_args__ = (
        UniqueConstraint("source_paper_id", "target_concept", "relationship_type", name="uq_relationship_edge"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    source_paper_id = Column(Integer, ForeignKey("papers.id", ondelete="CASCADE"), nullable=False, index=True)
    relationship_type = Column(String(50), nullable=False, index=True)
    target_concept = Column(String(255), nullable=False, index=True)

    evidence = Column(Text, nullable=True)
    confidence = Column(Float, default=1.0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
