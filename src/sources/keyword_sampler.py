# src/sources/keyword_sampler.py

"""Random sampling over the curated search vocabulary."""

import logging
import random

from src.config.settings import Settings

logger = logging.getLogger("baybot.sources")


class KeywordSampler:
    """Draws curated keywords without repeating ones already tried.

    The caller owns the ``attempted`` set for one build so that
    retries within that build never reuse a keyword.
    """

    def __init__(
        self,
        terms: list[str] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.terms = list(terms if terms is not None else Settings.CURATED_SEARCH_TERMS)
        self.rng = rng or random.Random()

    def get_random_term(self) -> str:
        """Return one term from the vocabulary."""
        if not self.terms:
            return ""
        return self.rng.choice(self.terms)

    def sample_batch(self, n: int, attempted: set[str]) -> list[str]:
        """Pick up to ``n`` distinct terms not in ``attempted``.

        Picked terms are added to ``attempted``. Returns fewer than
        ``n`` when the vocabulary runs out.
        """
        available = [
            term for term in dict.fromkeys(self.terms)
            if term not in attempted
        ]
        if n <= 0 or not available:
            return []
        batch = self.rng.sample(available, min(n, len(available)))
        attempted.update(batch)
        logger.debug("Sampled keywords %s", batch)
        return batch
