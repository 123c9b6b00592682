"""
Logistic link functions.

The sigmoid and the Bernoulli log-likelihood, both evaluated with
overflow-safe branching so that any finite margin gives a finite result.
"""

import numpy as np


class Logistic:
    """Binomial family with logit link."""

    @staticmethod
    def sigmoid(eta):
        """
        σ(η) = 1/(1 + exp(-η)).

        For η ≥ 0 uses 1/(1 + exp(-η)); for η < 0 uses exp(η)/(1 + exp(η)),
        so exp() never sees a large positive argument.
        """
        eta = np.asarray(eta, dtype=np.float64)
        out = np.empty_like(eta)
        pos = eta >= 0
        out[pos] = 1.0 / (1.0 + np.exp(-eta[pos]))
        e = np.exp(eta[~pos])
        out[~pos] = e / (1.0 + e)
        return out

    @staticmethod
    def log_sigmoid(eta):
        """log σ(η) = -log(1 + exp(-η)), stable for all η."""
        eta = np.asarray(eta, dtype=np.float64)
        return -(np.maximum(-eta, 0.0) + np.log1p(np.exp(-np.abs(eta))))

    def log_likelihood(self, y, eta) -> float:
        """
        Σ [y log σ(η) + (1 - y) log(1 - σ(η))].

        Uses log(1 - σ(η)) = log σ(-η).
        """
        y = np.asarray(y, dtype=np.float64)
        return float(np.sum(y * self.log_sigmoid(eta)
                            + (1.0 - y) * self.log_sigmoid(-eta)))

    def variance(self, mu):
        """Variance: V(μ) = μ(1-μ)"""
        return mu * (1.0 - mu)


def check_binary(y, name='y'):
    """Coerce a boolean or 0/1 label vector to float64, rejecting anything else."""
    y = np.asarray(y)
    if y.dtype == bool:
        return y.astype(np.float64)
    y = np.asarray(y, dtype=np.float64)
    observed = y[~np.isnan(y)]
    if not np.all((observed == 0.0) | (observed == 1.0)):
        raise ValueError(f"{name} must be boolean or 0/1 valued")
    return y


__all__ = ["Logistic", "check_binary"]
