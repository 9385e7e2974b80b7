# src/models/qualification.py

"""Records returned by the AI qualification and analysis calls."""

from dataclasses import dataclass
from typing import Any


@dataclass
class QualificationVerdict:
    """One entry of the AI output, in the order the model returned it.

    ``rarity_score`` is kept raw here; range checks happen in
    :class:`~src.filters.qualification_validator.QualificationValidator`.
    """

    listing_id: str
    rarity_score: Any = None


@dataclass
class AnalysisResult:
    """Risk/rarity assessment of a single listing."""

    risk_score: float
    rarity_score: float
    summary: str
