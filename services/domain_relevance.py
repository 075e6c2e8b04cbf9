# services/domain_relevance.py
from typing import List, Tuple

from pydantic import BaseModel, Field

from models.knowledge_models import Paper

EVIDENCE_PREFIX_CHARS = 20


class DomainProfile(BaseModel):
    """
    Keyword vocabulary for one research domain.
    Defaults describe Gaussian Splatting / radiance field rendering.
    """

    name: str = "Gaussian Splatting"

    # Relevance gate: at least one must appear in title+abstract.
    # One list serves discovery and processing; bare "gaussian" or "splatting" is too loose.
    relevance_keywords: List[str] = Field(default_factory=lambda: [
        "gaussian splatting",
        "3dgs",
        "gaussian splat",
        "radiance field",
        "novel view synthesis",
        "3d reconstruction",
        "neural rendering",
    ])

    # (phrase, weight) pairs summed into the prioritization score.
    score_weights: List[Tuple[str, int]] = Field(default_factory=lambda: [
        ("gaussian splatting", 3),
        ("3dgs", 2),
        ("radiance field", 2),
        ("real-time", 1),
    ])

    # Terms OR-ed into the keyword search query.
    search_keywords: List[str] = Field(default_factory=lambda: [
        "gaussian splatting",
        "3DGS",
        "radiance field",
        "novel view synthesis",
    ])

    def is_relevant(self, paper: Paper) -> bool:
        content = paper.text.lower()
        return any(keyword in content for keyword in self.relevance_keywords)

    def relevance_score(self, paper: Paper) -> int:
        content = paper.text.lower()
        return sum(weight for phrase, weight in self.score_weights if phrase in content)


def evidence_in_paper(evidence: str, paper: Paper) -> bool:
    """Strict grounding used at parse time: the evidence prefix must occur verbatim."""
    prefix = evidence.lower()[:EVIDENCE_PREFIX_CHARS]
    return bool(prefix) and prefix in paper.text.lower()


def evidence_is_sensible(evidence: str, paper: Paper) -> bool:
    """
    Looser grounding used by validation: full containment, or any evidence
    longer than EVIDENCE_PREFIX_CHARS characters.
    """
    lowered = evidence.lower()
    return lowered in paper.text.lower() or len(lowered) > EVIDENCE_PREFIX_CHARS


def concept_is_relevant(name: str, paper: Paper) -> bool:
    content = paper.text.lower()
    lowered = name.lower()
    if lowered in content:
        return True
    return any(len(token) > 3 and token in content for token in lowered.split(" "))
