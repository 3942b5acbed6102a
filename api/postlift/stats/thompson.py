"""Thompson Sampling over Beta-Binomial posteriors.

Each round draws one sample from every variant's posterior and credits the
highest.  Repeated over many rounds the win fractions estimate the
probability that each variant is the best one.
"""

from __future__ import annotations

import numpy as np

from postlift.stats.bayesian import BetaBinomial


def draw_sample_matrix(
    models: list[BetaBinomial],
    n_samples: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw a (n_samples, n_variants) matrix from a list of posteriors."""
    return np.column_stack([m.sample(n_samples, rng) for m in models])


class ThompsonSampler:
    """Thompson Sampling estimator backed by BetaBinomial posteriors.

    Parameters
    ----------
    models : list[BetaBinomial]
        One posterior model per variant, in variant order.
    rng : np.random.Generator
        Source of randomness for the simulated draws.
    """

    def __init__(self, models: list[BetaBinomial], rng: np.random.Generator) -> None:
        if not models:
            raise ValueError("Must provide at least one model")
        self.models = models
        self.rng = rng

    def probability_best(self, n_samples: int = 10_000) -> list[float]:
        """Monte Carlo estimate of P(variant_i is best) for each variant.

        Parameters
        ----------
        n_samples : int
            Number of simulated rounds.

        Returns
        -------
        list[float]
            Win fraction per variant, sums to 1.0.
        """
        if n_samples <= 0:
            raise ValueError("n_samples must be positive")
        samples = draw_sample_matrix(self.models, n_samples, self.rng)
        winners = np.argmax(samples, axis=1)
        counts = np.bincount(winners, minlength=len(self.models))
        return (counts / n_samples).tolist()
