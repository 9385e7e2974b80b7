# tests/test_qualification_validator.py

"""Tests for QualificationValidator handling of untrusted AI output."""

import unittest

from src.filters.qualification_validator import QualificationValidator
from src.models.listing import AuctionDetails, ItemType, Listing
from src.models.qualification import QualificationVerdict as V


def _auctions(*ids: str) -> list[Listing]:
    return [
        Listing(
            id=item_id,
            item_type=ItemType.AUCTION,
            title=f"Lot {item_id}",
            price=10.0,
            auction=AuctionDetails(end_time="2099-01-01T00:00:00Z"),
        )
        for item_id in ids
    ]


class TestQualificationValidator(unittest.TestCase):
    """QualificationValidator.validate behaviour."""

    def test_ai_order_is_kept(self) -> None:
        """Qualified listings come back in the order the model chose."""
        submitted = _auctions("a", "b", "c")
        qualified, report = QualificationValidator.validate(
            submitted, [V("c"), V("a")]
        )
        self.assertEqual([l.id for l in qualified], ["c", "a"])
        self.assertEqual(report.anomalies, 0)

    def test_unknown_ids_discarded(self) -> None:
        """Ids that were never submitted are dropped and counted."""
        qualified, report = QualificationValidator.validate(
            _auctions("a"), [V("ghost"), V("a")], context="watches"
        )
        self.assertEqual([l.id for l in qualified], ["a"])
        self.assertEqual(report.unknown_ids, 1)

    def test_duplicates_collapse_to_first(self) -> None:
        """A repeated id keeps the first verdict's score."""
        qualified, report = QualificationValidator.validate(
            _auctions("a", "b"), [V("a", 90), V("b", 10), V("a", 20)]
        )
        self.assertEqual([l.id for l in qualified], ["a", "b"])
        self.assertEqual(qualified[0].rarity_score, 90.0)
        self.assertEqual(report.duplicate_ids, 1)

    def test_out_of_range_score_becomes_absent(self) -> None:
        """rarityScore > 100 or non-numeric is dropped, the listing kept."""
        qualified, report = QualificationValidator.validate(
            _auctions("a", "b", "c"), [V("a", 150), V("b", "high"), V("c", True)]
        )
        self.assertEqual(len(qualified), 3)
        self.assertTrue(all(l.rarity_score is None for l in qualified))
        self.assertEqual(report.invalid_scores, 3)

    def test_submitted_listings_not_mutated(self) -> None:
        """Scores land on copies, never on the raw pool."""
        submitted = _auctions("a")
        qualified, _ = QualificationValidator.validate(submitted, [V("a", 64)])
        self.assertEqual(qualified[0].rarity_score, 64.0)
        self.assertIsNone(submitted[0].rarity_score)

    def test_empty_verdicts(self) -> None:
        qualified, report = QualificationValidator.validate(_auctions("a"), [])
        self.assertEqual(qualified, [])
        self.assertEqual(report.anomalies, 0)


if __name__ == "__main__":
    unittest.main()
