# database/models/artifact_model.py
# Methods, datasets and metrics reported by papers, each unique by name.
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from database.db import Base


class Method(Base):
    __tablename__ = "methods"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Dataset(Base):
    __tablename__ = "datasets"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    task_type = Column(String(255), nullable=True)
    size = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Metric(Base):
    __tablename__ = "metrics"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False, index=True)
    unit = Column(String(100), nullable=True)
    higher_is_better = Column(Boolean, default=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PaperMethod(Base):
    __tablename__ = "paper_methods"

    paper_id = Column(Integer, ForeignKey("papers.id", ondelete="CASCADE"), primary_key=True)
    method_id = Column(Integer, ForeignKey("methods.id", ondelete="CASCADE"), primary_key=True)
    introduces = Column(Boolean, default=False, nullable=False)
    confidence = Column(Float, default=1.0)


class PaperDataset(Base):
    __tablename__ = "paper_datasets"

    paper_id = Column(Integer, ForeignKey("papers.id", ondelete="CASCADE"), primary_key=True)
    dataset_id = Column(Integer, ForeignKey("datasets.id", ondelete="CASCADE"), primary_key=True)


class PaperMetric(Base):
    __tablename__ = "paper_metrics"

    paper_id = Column(Integer, ForeignKey("papers.id", ondelete="CASCADE"), primary_key=True)
    metric_id = Column(Integer, ForeignKey("metrics.id", ondelete="CASCADE"), primary_key=True)
