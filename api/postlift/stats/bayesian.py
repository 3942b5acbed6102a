"""Conjugate Beta-Binomial model for per-variant conversion rates.

Uses a uniform Beta(1, 1) prior unless the experiment configures one.  The
model is immutable: ``update()`` returns a *new* ``BetaBinomial`` so callers
can safely compare pre- and post-update posteriors.
"""

from __future__ import annotations

import math

import numpy as np

from postlift.stats.primitives import (
    beta_mean,
    beta_posterior,
    beta_variance,
    credible_interval,
    sample_beta,
)


class BetaBinomial:
    """Immutable Beta-Binomial conjugate model.

    Parameters
    ----------
    prior_alpha : float
        Alpha parameter of the Beta prior (pseudo-successes).  Default 1.
    prior_beta : float
        Beta parameter of the Beta prior (pseudo-failures).  Default 1.
    """

    __slots__ = ("alpha", "beta")

    def __init__(self, prior_alpha: float = 1.0, prior_beta: float = 1.0) -> None:
        if prior_alpha <= 0 or prior_beta <= 0:
            raise ValueError("Alpha and beta must be positive")
        self.alpha = prior_alpha
        self.beta = prior_beta

    # ------------------------------------------------------------------
    # Posterior update (returns new instance, immutable)
    # ------------------------------------------------------------------

    def update(self, successes: int, trials: int) -> BetaBinomial:
        """Return a **new** BetaBinomial with the posterior after observing data.

        Parameters
        ----------
        successes : int
            Number of conversions observed.
        trials : int
            Total number of outcomes observed.
        """
        if successes < 0:
            raise ValueError("successes must be non-negative")
        if trials < 0:
            raise ValueError("trials must be non-negative")
        if successes > trials:
            raise ValueError("successes cannot exceed trials")
        alpha, beta = beta_posterior(self.alpha, self.beta, successes, trials - successes)
        return BetaBinomial(prior_alpha=alpha, prior_beta=beta)

    # ------------------------------------------------------------------
    # Posterior summaries
    # ------------------------------------------------------------------

    def posterior_mean(self) -> float:
        return beta_mean(self.alpha, self.beta)

    def posterior_variance(self) -> float:
        return beta_variance(self.alpha, self.beta)

    def posterior_std(self) -> float:
        return math.sqrt(self.posterior_variance())

    def credible_interval(self, width: float = 0.95) -> tuple[float, float]:
        """Normal-approximation credible interval for the conversion rate.

        Parameters
        ----------
        width : float
            Interval mass, e.g. 0.95 for 95%.
        """
        if not 0 < width < 1:
            raise ValueError("width must be between 0 and 1 exclusive")
        return credible_interval(self.alpha, self.beta, width)

    def sample(self, n: int, rng: np.random.Generator) -> np.ndarray:
        """Draw *n* approximate samples from the posterior."""
        return sample_beta(self.alpha, self.beta, rng, size=n)

    def __repr__(self) -> str:
        return f"BetaBinomial(alpha={self.alpha:.3f}, beta={self.beta:.3f})"
