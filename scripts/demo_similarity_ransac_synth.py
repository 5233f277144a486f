import numpy as np

from simransac.ransac.core import Ransac
from simransac.ransac.estimator import LandmarkRegistrationEstimator
from simransac.ransac.similarity import apply_similarity, params_to_matrix, rotation_angle_deg
from simransac.matching.correspondences import pack_correspondences
from simransac.utils.logger import setup_logger


def main() -> None:
    setup_logger(level="INFO")
    rng = np.random.default_rng(0)

    # True similarity transform
    angle = np.deg2rad(25.0)
    axis = np.array([0.3, -0.5, 0.8])
    rvec = axis / np.linalg.norm(axis) * angle
    params_true = np.concatenate([rvec, [0.4, -1.2, 2.0], [1.3]])
    s_true, R_true, t_true = params_to_matrix(params_true)

    # Generate inlier points
    sigma = 0.01
    n_in = 100
    fixed = rng.uniform(-1.0, 1.0, size=(n_in, 3))
    moving = apply_similarity(params_true, fixed)
    moving += rng.normal(0.0, sigma, size=moving.shape)

    # Add outliers (wrong matches)
    n_out = 20
    o_fixed = rng.uniform(-1.0, 1.0, size=(n_out, 3))
    o_moving = rng.uniform(-3.0, 3.0, size=(n_out, 3))

    data = pack_correspondences(np.vstack([fixed, o_fixed]), np.vstack([moving, o_moving]))

    # Run RANSAC
    estimator = LandmarkRegistrationEstimator(delta=3 * sigma, minimal_for_estimate=3)
    engine = Ransac(estimator=estimator, rng=np.random.default_rng(42))
    engine.set_max_iteration(10000)
    engine.set_check_correspondence_distance(True)
    engine.set_check_correspondence_edge_length(0.9)
    res = engine.compute(0.99, data=data)

    print("params_true:", params_true)
    if not res.success:
        print("RANSAC estimate failed, degenerate configuration?")
        return

    s_est, R_est, t_est = params_to_matrix(res.parameters)
    print("params_est: ", res.parameters)
    print("rotation error (deg):", rotation_angle_deg(R_est, R_true))
    print("scale:", s_est, "vs", s_true)
    print("percentageOfDataUsed:", res.percentage_of_data_used)
    print("inlier RMSE:", res.inlier_rmse)
    print("iterations:", res.iterations)


if __name__ == "__main__":
    main()
