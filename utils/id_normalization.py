# utils/id_normalization.py
from typing import Optional
import re

_VERSION_SUFFIX = re.compile(r"v\d+$")


def normalize_arxiv_id(raw_id: str) -> Optional[str]:
    """
    Reduce an arXiv identifier or abs URL to its stable key.
    'http://arxiv.org/abs/2308.04079v2' -> '2308.04079'
    """
    if not raw_id or not raw_id.strip():
        return None
    ident = raw_id.strip().rstrip("/")
    if "/abs/" in ident:
        ident = ident.split("/abs/", 1)[1]
    elif ident.startswith("http"):
        ident = ident.split("/")[-1]
    ident = _VERSION_SUFFIX.sub("", ident)
    return ident or None


def arxiv_pdf_url(arxiv_id: str) -> str:
    return f"https://arxiv.org/pdf/{arxiv_id}.pdf"
