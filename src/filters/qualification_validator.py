# src/filters/qualification_validator.py

"""Validate AI qualification output against the submitted listings."""

import logging
from dataclasses import dataclass

from src.models.listing import Listing
from src.models.qualification import QualificationVerdict

logger = logging.getLogger("baybot.filters")


@dataclass
class ValidationReport:
    """Counts of anomalies found in one AI response."""

    unknown_ids: int = 0
    duplicate_ids: int = 0
    invalid_scores: int = 0

    @property
    def anomalies(self) -> int:
        """Total anomalies of any kind."""
        return self.unknown_ids + self.duplicate_ids + self.invalid_scores


def _valid_score(value: object) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return 0 <= value <= 100


class QualificationValidator:
    """Map AI verdicts back onto the listings that were submitted.

    The model output is never trusted: unknown ids are discarded,
    repeated ids collapse to their first occurrence, and a rarity
    score outside 0-100 is dropped rather than propagated.
    """

    @staticmethod
    def validate(
        submitted: list[Listing],
        verdicts: list[QualificationVerdict],
        context: str = "",
    ) -> tuple[list[Listing], ValidationReport]:
        """Return the qualified listings in AI order plus a report."""
        by_id = {listing.id: listing for listing in submitted}
        report = ValidationReport()
        seen: set[str] = set()
        qualified: list[Listing] = []

        for verdict in verdicts:
            original = by_id.get(verdict.listing_id)
            if original is None:
                report.unknown_ids += 1
                logger.warning(
                    "AI returned unknown id '%s' for context '%s', "
                    "discarding",
                    verdict.listing_id,
                    context,
                )
                continue
            if verdict.listing_id in seen:
                report.duplicate_ids += 1
                logger.warning(
                    "AI returned duplicate id '%s' for context '%s'",
                    verdict.listing_id,
                    context,
                )
                continue
            seen.add(verdict.listing_id)

            score = verdict.rarity_score
            if score is not None and not _valid_score(score):
                report.invalid_scores += 1
                logger.warning(
                    "AI returned out-of-range rarity %r for id '%s', "
                    "dropping score",
                    score,
                    verdict.listing_id,
                )
                score = None

            if score is None:
                qualified.append(original)
            else:
                qualified.append(original.with_scores(float(score)))

        if report.anomalies:
            logger.info(
                "AI output for '%s': %d unknown, %d duplicate, "
                "%d invalid scores",
                context,
                report.unknown_ids,
                report.duplicate_ids,
                report.invalid_scores,
            )

        return qualified, report
