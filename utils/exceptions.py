# utils/exceptions.py


class KnowledgeGraphError(Exception):
    """Base class for every error raised by the knowledge graph pipeline."""
    pass


class ConfigError(KnowledgeGraphError):
    """Raised when a required secret or setting is missing or malformed."""
    pass


class FetchFailure(KnowledgeGraphError):
    """Raised when the paper source is unreachable or unparseable after retries."""
    pass


class ExtractionFailure(KnowledgeGraphError):
    """Raised when the LLM is unreachable or its response unparseable after retries."""
    pass


class StorageFailure(KnowledgeGraphError):
    """Raised when a single knowledge store write or read fails."""
    pass


class PaperProcessingFailure(KnowledgeGraphError):
    """Raised when one paper cannot be integrated. Recorded, never fatal for a batch."""

    def __init__(self, paper_id: str, message: str):
        super().__init__(f"{paper_id}: {message}")
        self.paper_id = paper_id


class SeedProcessingFailure(KnowledgeGraphError):
    """Raised when the seed paper fails. Aborts the whole build."""

    def __init__(self, paper_id: str, message: str):
        super().__init__(f"Seed paper {paper_id} failed: {message}")
        self.paper_id = paper_id
