# Andy Zhao
"""
Generic RANSAC engine (model-agnostic).

RANSAC overview:
- Randomly sample a *minimal* subset of correspondences
- Fit candidate parameters from that subset
- Score the working set (data + optional agree data) against the candidate
- Keep the candidate with the most inliers (ties: lower inlier RMSE)
- Shrink the iteration budget as the best inlier ratio grows
- Refit using all inliers (least squares) to get the final parameters

Uses the ParametersEstimator Protocol from types.py, so the same loop works
for similarity and rigid landmark registration.

State machine:
    Initialized -> Sampling -> Fitting -> Scoring -> (Converged | ExhaustedIterations)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional
import enum
import logging
import os

import numpy as np

from .types import (
    Correspondences, ParametersEstimator, RansacResult, EstimatorState,
    as_correspondences, empty_parameters)
from .errors import InvalidConfigurationError
from .estimator import LandmarkRegistrationEstimator
from .scoring import sample_edge_lengths_consistent

logger = logging.getLogger(__name__)
_RANSAC_DEBUG = os.environ.get("SIMRANSAC_RANSAC_DEBUG", "0") == "1"


class RansacStage(enum.Enum):
    INITIALIZED = "initialized"
    SAMPLING = "sampling"
    FITTING = "fitting"
    SCORING = "scoring"
    CONVERGED = "converged"
    EXHAUSTED_ITERATIONS = "exhausted_iterations"


def required_iterations(
        *,
        p_all_inliers: float,
        inlier_ratio: float,
        sample_size: int,
        max_iteration: int,
) -> int:
    """
    Compute the number of RANSAC iterations needed so that the probability
    of having drawn at least ONE all-inlier minimal sample is >= p_all_inliers.

    inlier ratio w = (# inliers) / N, minimal sample k,
    - P(all-inliers) = w^k
    - P(not-all-inlier-for-N-times) = (1 - w^k)^N
    - P(at-least-once-all-inliers) = 1 - (1 - w^k)^N >= p

    Formula:
       N >= log(1 - p) / log(1 - w^k)

    Result is clamped to [1, max_iteration].
    """
    p = float(np.clip(p_all_inliers, 1e-12, 1.0 - 1e-12))
    w = float(np.clip(inlier_ratio, 0.0, 1.0))
    k = int(sample_size)
    cap = max(1, int(max_iteration))

    if k <= 0:
        raise ValueError("sample_size must be >= 1")

    # Every point is an inlier
    if w >= 1.0:
        return 1

    # Unable to draw an all-inlier sample
    if w <= 0.0:
        return cap

    w_to_k = float(np.clip(w ** k, 1e-12, 1.0 - 1e-12))

    n = int(np.ceil(np.log(1.0 - p) / np.log(1.0 - w_to_k)))
    return int(np.clip(n, 1, cap))


# ---------- Engine parameters ----------
@dataclass(frozen=True)
class RansacParams:
    """
    Settings for one robust landmark registration.

    - delta: inlier distance threshold (same units as the points)
    - minimal_for_estimate: correspondences per hypothesis (3 for a 3D similarity)
    - max_iteration: hard cap on RANSAC iterations
    - desired_probability: confidence that one all-inlier sample is drawn
    - check_correspondence_distance: reject hypotheses whose own sample disagrees
    - edge_length_similarity: 0 disables, else e.g. 0.9 (edge ratio band 0.9 .. 1/0.9)
    - early_exit_ratio: stop as soon as this inlier fraction is reached
    - max_refinements: refit + re-score rounds after the loop (>= 1)
    - seed: RNG seed for reproducible sampling
    - estimate_scale: False gives a rigid transform (scale fixed to 1)
    """
    delta: float = 3.0
    minimal_for_estimate: int = 3
    max_iteration: int = 10000
    desired_probability: float = 0.99
    check_correspondence_distance: bool = False
    edge_length_similarity: float = 0.0
    early_exit_ratio: float = 1.0
    max_refinements: int = 5
    seed: Optional[int] = 0
    estimate_scale: bool = True

    def __post_init__(self) -> None:
        if self.delta < 0.0 or not np.isfinite(self.delta):
            raise InvalidConfigurationError(f"delta must be >= 0, got {self.delta}")
        if self.minimal_for_estimate <= 0:
            raise InvalidConfigurationError(
                f"minimal_for_estimate must be > 0, got {self.minimal_for_estimate}")
        if self.max_iteration < 1:
            raise InvalidConfigurationError(f"max_iteration must be >= 1, got {self.max_iteration}")
        _validate_probability(self.desired_probability)
        _validate_edge_length_similarity(self.edge_length_similarity)
        _validate_early_exit_ratio(self.early_exit_ratio)
        if self.max_refinements < 1:
            raise InvalidConfigurationError(f"max_refinements must be >= 1, got {self.max_refinements}")

    @classmethod
    def from_dict(cls, config: Mapping[str, Any]) -> "RansacParams":
        """
        Build from a plain mapping (e.g. a section of a loaded config file).
        Unknown keys are rejected so typos do not pass silently.
        """
        known = set(cls.__dataclass_fields__)
        unknown = set(config) - known
        if unknown:
            raise InvalidConfigurationError(f"Unknown RANSAC settings: {sorted(unknown)}")
        return cls(**dict(config))


def _validate_probability(p: float) -> None:
    if not (0.0 < float(p) < 1.0):
        raise InvalidConfigurationError(f"desired probability must be in (0, 1), got {p}")


def _validate_edge_length_similarity(similarity: float) -> None:
    if not (0.0 <= float(similarity) <= 1.0):
        raise InvalidConfigurationError(
            f"edge length similarity must be in [0, 1], got {similarity}")


def _validate_early_exit_ratio(ratio: float) -> None:
    if not (0.0 < float(ratio) <= 1.0):
        raise InvalidConfigurationError(f"early exit ratio must be in (0, 1], got {ratio}")


# ---------- Engine ----------
@dataclass
class Ransac:
    """
    Stateful RANSAC engine.

    - configure with the set_* methods (or Ransac.from_params)
    - compute(desired_probability) runs one robust estimation

    Inputs are borrowed: data / agree data are read, never modified.
    """
    estimator: Optional[ParametersEstimator] = None
    max_iteration: int = 10000
    check_correspondence_distance: bool = False
    edge_length_similarity: float = 0.0
    early_exit_ratio: float = 1.0
    max_refinements: int = 5
    rng: np.random.Generator = field(default_factory=lambda: np.random.default_rng(0))

    # Optional cooperative cancellation, polled once per iteration
    stop_requested: Optional[Callable[[], bool]] = None

    # ---------- Internal state ----------
    _data: Optional[Correspondences] = None
    _agree_data: Optional[Correspondences] = None
    _stage: RansacStage = RansacStage.INITIALIZED

    @classmethod
    def from_params(cls, params: RansacParams,
                    estimator: Optional[ParametersEstimator] = None) -> "Ransac":
        if estimator is None:
            estimator = LandmarkRegistrationEstimator(
                delta=params.delta,
                minimal_for_estimate=params.minimal_for_estimate,
                estimate_scale=params.estimate_scale,
            )
        return cls(
            estimator=estimator,
            max_iteration=params.max_iteration,
            check_correspondence_distance=params.check_correspondence_distance,
            edge_length_similarity=params.edge_length_similarity,
            early_exit_ratio=params.early_exit_ratio,
            max_refinements=params.max_refinements,
            rng=np.random.default_rng(params.seed),
        )

    # ---------- Configuration ----------
    @property
    def stage(self) -> RansacStage:
        return self._stage

    def set_parameters_estimator(self, estimator: ParametersEstimator) -> None:
        self.estimator = estimator

    def set_data(self, data) -> None:
        self._data = as_correspondences(data)

    def set_agree_data(self, points) -> None:
        """
        Trusted / denser correspondences used only to validate candidates,
        never to generate them.
        """
        self._agree_data = as_correspondences(points) if points is not None else None

    def set_max_iteration(self, n: int) -> None:
        if int(n) < 1:
            raise InvalidConfigurationError(f"max_iteration must be >= 1, got {n}")
        self.max_iteration = int(n)

    def set_check_correspondence_distance(self, enabled: bool) -> None:
        self.check_correspondence_distance = bool(enabled)

    # Spelling used by the registration test harness this API mirrors
    set_check_corresspondence_distance = set_check_correspondence_distance

    def set_check_correspondence_edge_length(self, similarity: float) -> None:
        _validate_edge_length_similarity(similarity)
        self.edge_length_similarity = float(similarity)

    def set_early_exit_ratio(self, ratio: float) -> None:
        _validate_early_exit_ratio(ratio)
        self.early_exit_ratio = float(ratio)

    def set_max_refinements(self, n: int) -> None:
        if int(n) < 1:
            raise InvalidConfigurationError(f"max_refinements must be >= 1, got {n}")
        self.max_refinements = int(n)

    def set_seed(self, seed: Optional[int]) -> None:
        self.rng = np.random.default_rng(seed)

    def set_stop_requested(self, stop_requested: Optional[Callable[[], bool]]) -> None:
        self.stop_requested = stop_requested

    # ---------- Helpers ----------
    def _working_agree_data(self) -> Optional[Correspondences]:
        if self._agree_data is not None:
            return self._agree_data
        # Fall back to agree data configured on the estimator itself
        return getattr(self.estimator, "agree_data", None)

    def _validate(self, data: Correspondences, desired_probability: float) -> int:
        if self.estimator is None:
            raise InvalidConfigurationError("No parameters estimator set")
        _validate_probability(desired_probability)
        if self.max_iteration < 1:
            raise InvalidConfigurationError(f"max_iteration must be >= 1, got {self.max_iteration}")

        k = int(self.estimator.minimal_for_estimate)
        n = data.shape[0]
        if k <= 0:
            raise InvalidConfigurationError(f"minimal_for_estimate must be > 0, got {k}")
        if k > n:
            raise InvalidConfigurationError(
                f"minimal_for_estimate ({k}) exceeds the number of correspondences ({n})")

        agree_data = self._working_agree_data()
        if agree_data is not None and agree_data.shape[1] != data.shape[1]:
            raise InvalidConfigurationError(
                f"agree data width {agree_data.shape[1]} does not match data width {data.shape[1]}")
        return k

    def _passes_sample_checks(self, params, sample: Correspondences) -> bool:
        if self.check_correspondence_distance:
            mask, _ = self.estimator.consensus(params, sample)
            if not mask.all():
                return False
        if self.edge_length_similarity > 0.0:
            scale = self.estimator.scale_of(params)
            if not sample_edge_lengths_consistent(sample, scale, self.edge_length_similarity):
                return False
        return True

    def _refine(self, params, inliers, working: Correspondences):
        """
        Refit on all inliers (least squares), then re-score with the refit.

        A refit is adopted together with its own re-scored set, and only if
        that set is at least as large, so the returned mask is always the
        consensus of the returned parameters. Repeats until the set stops
        changing or max_refinements rounds ran. If no refit is adopted, the
        best minimal model is kept.
        """
        for _ in range(self.max_refinements):
            refit = self.estimator.least_squares_estimate(working[inliers])
            if refit.size == 0:
                break

            mask, _ = self.estimator.consensus(refit, working)
            if np.count_nonzero(mask) < np.count_nonzero(inliers):
                break
            unchanged = np.array_equal(mask, inliers)
            params, inliers = refit, mask
            if unchanged:
                break
        return params, inliers

    # ---------- Main RANSAC Loop ----------
    def compute(self, desired_probability: float = 0.99, data=None) -> RansacResult:
        """
        Run RANSAC on data (or the data given to set_data).

        Returns:
        - RansacResult. On failure parameters is empty and success is False;
          an empty vector must never be read as the identity transform.
        """
        if data is not None:
            data = as_correspondences(data)
        elif self._data is not None:
            data = self._data
        else:
            raise InvalidConfigurationError("No data to compute on")

        k = self._validate(data, desired_probability)
        estimator = self.estimator
        self._stage = RansacStage.INITIALIZED

        agree_data = self._working_agree_data()
        working = data if agree_data is None else np.vstack([data, agree_data])

        n_sample = data.shape[0]
        n_working = working.shape[0]
        delta = float(getattr(estimator, "delta", float("nan")))

        state = EstimatorState(
            max_iteration=self.max_iteration,
            delta=delta,
            desired_probability=float(desired_probability),
        )

        converged = False
        while state.iterations < state.iteration_bound:
            if self.stop_requested is not None and self.stop_requested():
                logger.info("RANSAC cancelled after %d iterations", state.iterations)
                break

            state.iterations += 1

            # Sample a minimal subset (unique indices, no replacement).
            # Sorted so k == n always yields the same sample.
            self._stage = RansacStage.SAMPLING
            sample_idx = np.sort(self.rng.choice(n_sample, size=k, replace=False))
            sample = data[sample_idx]

            # Fit from minimal set, empty if degenerate
            self._stage = RansacStage.FITTING
            params = estimator.estimate(sample)
            if params.size == 0:
                continue
            if not self._passes_sample_checks(params, sample):
                continue

            # Score the working set
            self._stage = RansacStage.SCORING
            inliers, err = estimator.consensus(params, working)
            num_inliers = int(np.count_nonzero(inliers))
            if num_inliers < k:
                # Not enough inliers to be meaningful
                continue

            rmse = float(np.sqrt(np.mean(err[inliers])))

            # Primary criterion: more inliers. If tie: lower RMSE
            is_better = (num_inliers > state.best_num_inliers) or (
                num_inliers == state.best_num_inliers and rmse < state.best_rmse
            )
            if not is_better:
                continue

            state.best_parameters = params
            state.best_inliers = inliers
            state.best_num_inliers = num_inliers
            state.best_rmse = rmse

            # Samples come from data only, so the bound uses the data inlier ratio
            w_sample = np.count_nonzero(inliers[:n_sample]) / float(n_sample)
            iter_needed = required_iterations(
                p_all_inliers=state.desired_probability,
                inlier_ratio=w_sample,
                sample_size=k,
                max_iteration=self.max_iteration,
            )
            state.iteration_bound = min(state.iteration_bound, max(iter_needed, state.iterations))
            if _RANSAC_DEBUG:
                logger.debug("better model: inliers=%d/%d, w_sample=%.3f, iteration_bound=%d",
                             num_inliers, n_working, w_sample, state.iteration_bound)

            if num_inliers / float(n_working) >= self.early_exit_ratio:
                converged = True
                break

        if converged or state.iterations < self.max_iteration:
            self._stage = RansacStage.CONVERGED
        else:
            self._stage = RansacStage.EXHAUSTED_ITERATIONS

        if not state.has_model:
            logger.warning("RANSAC estimate failed after %d iterations, degenerate configuration?",
                           state.iterations)
            return RansacResult(
                parameters=empty_parameters(),
                success=False,
                percentage_of_data_used=0.0,
                inlier_rmse=0.0,
                inliers=np.zeros((n_working,), dtype=bool),
                num_inliers=0,
                iterations=state.iterations,
                threshold=delta,
            )

        final_params, best_inliers = self._refine(state.best_parameters, state.best_inliers, working)

        # Recompute RMSE on the inliers for the final parameters
        _, final_err = estimator.consensus(final_params, working)
        num_inliers = int(np.count_nonzero(best_inliers))
        final_rmse = float(np.sqrt(np.sum(final_err[best_inliers]) / num_inliers))

        logger.debug("RANSAC done: %d/%d inliers, rmse=%.6g, iterations=%d (%s)",
                     num_inliers, n_working, final_rmse, state.iterations, self._stage.value)

        return RansacResult(
            parameters=final_params,
            success=True,
            percentage_of_data_used=num_inliers / float(n_working),
            inlier_rmse=final_rmse,
            inliers=best_inliers,
            num_inliers=num_inliers,
            iterations=state.iterations,
            threshold=delta,
        )


def ransac(
        estimator: ParametersEstimator,
        data,
        *,
        desired_probability: float = 0.99,
        agree_data=None,
        max_iteration: int = 10000,
        check_correspondence_distance: bool = False,
        edge_length_similarity: float = 0.0,
        seed: Optional[int] = 0,
) -> RansacResult:
    """
    One-shot helper: configure a Ransac engine and run compute().

    Inputs:
    - estimator: provides estimate, least_squares_estimate, consensus
    - data: (N,6) packed correspondences [fixed_xyz, moving_xyz]
    - agree_data: optional validation-only correspondences
    - seed: RNG seed for reproducibility
    """
    engine = Ransac(estimator=estimator, rng=np.random.default_rng(seed))
    engine.set_max_iteration(max_iteration)
    engine.set_check_correspondence_distance(check_correspondence_distance)
    engine.set_check_correspondence_edge_length(edge_length_similarity)
    engine.set_agree_data(agree_data)
    return engine.compute(desired_probability, data=data)
