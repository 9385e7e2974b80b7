# src/ai/deal_analyzer.py

"""Single-listing risk and rarity analysis."""

import logging

from src.ai.gemini_client import GeminiClient
from src.exceptions import QualificationFailure
from src.models.listing import Listing
from src.models.qualification import AnalysisResult

logger = logging.getLogger("baybot.ai")


def _score(data: dict, name: str) -> float:
    value = data.get(name)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise QualificationFailure(f"{name} missing or not a number: {value!r}")
    if not 0 <= value <= 100:
        raise QualificationFailure(f"{name} out of range: {value!r}")
    return float(value)


class DealAnalyzer:
    """Asks the model for a risk score, rarity score and summary."""

    def __init__(self, client: GeminiClient | None = None) -> None:
        self.client = client or GeminiClient()

    @staticmethod
    def build_prompt(listing: Listing) -> str:
        return "\n".join([
            "You are an expert deal analyst assessing the risk and rarity "
            "of online deals.",
            f"Title: {listing.title}",
            f"Description: {listing.description}",
            f"Price: {listing.price:.2f}",
            f"Original Price: {(listing.original_price or listing.price):.2f}",
            f"Discount Percentage: {listing.discount_percentage}",
            f"Image URL: {listing.image_url}",
            "",
            'Answer with a JSON object {"riskScore": 0-100, '
            '"rarityScore": 0-100, "summary": "..."}. Higher riskScore '
            "means riskier, higher rarityScore means rarer.",
        ])

    def analyze(self, listing: Listing) -> AnalysisResult:
        """Analyse one listing; raises QualificationFailure on bad output."""
        output = self.client.generate_json(self.build_prompt(listing))
        if not isinstance(output, dict):
            raise QualificationFailure(
                f"Expected a JSON object, got {type(output).__name__}"
            )
        result = AnalysisResult(
            risk_score=_score(output, "riskScore"),
            rarity_score=_score(output, "rarityScore"),
            summary=str(output.get("summary") or ""),
        )
        logger.info(
            "Analysed '%s': risk %.0f, rarity %.0f",
            listing.id,
            result.risk_score,
            result.rarity_score,
        )
        return result
