# database/models/concept_model.py
from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, func
from database.db import Base


class Concept(Base):
    """
    Globally deduplicated by (name, category). First writer keeps the description.
    """
    __tablename__ = "concepts"
    __table_args__ = (
        UniqueConstraint("name", "category", name="uq_concept_name_category"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    name = Column(String(255), nullable=False, index=True)
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)

    frequency = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PaperConcept(Base):
    __tablename__ = "paper_concepts"

    paper_id = Column(Integer, ForeignKey("papers.id", ondelete="CASCADE"), primary_key=True, index=True)
    concept_id = Column(Integer, ForeignKey("concepts.id", ondelete="CASCADE"), primary_key=True, index=True)
    relation = Column(String(50), primary_key=True)

    confidence = Column(Float, default=1.0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
