# database/models/paper_model.py
from sqlalchemy import Column, DateTime, Integer, String, Text, JSON, func
from database.db import Base


class Paper(Base):
    __tablename__ = "papers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Stable external key, version suffix stripped
    arxiv_id = Column(String(50), unique=True, index=True, nullable=False)

    # Core metadata
    title = Column(Text, nullable=False)
    authors = Column(JSON, nullable=False, default=list)
    abstract = Column(Text, nullable=True)

    published_date = Column(String(64), nullable=True)
    published_year = Column(Integer, nullable=True)
    pdf_url = Column(String(512), nullable=True)
    categories = Column(JSON, default=list)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
