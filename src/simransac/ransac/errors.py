# Andy Zhao
"""
Errors raised while configuring the estimator / RANSAC engine.

Fitting and scoring never raise for bad samples: a degenerate sample is
reported as an empty parameter vector and a failed run as
RansacResult.success == False. Only configuration problems raise, and
they do so before any sampling starts.
"""


class InvalidConfigurationError(ValueError):
    """Bad estimator or engine settings (k <= 0, k > |data|, delta < 0, ...)."""
