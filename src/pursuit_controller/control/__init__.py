"""제어 모듈 패키지.

경로 변환/가지치기, Pure Pursuit 조향, 기구학 제한, 충돌 예측 알고리즘을
제공합니다.
"""
from .collision import interpolate_segment, is_collision_imminent
from .kinematics import (
    apply_accel_limit,
    apply_kinematic_constraints,
    clamp_velocities,
    scale_for_path_end,
)
from .plan import PlanStore, find_closest_index, get_max_transform_dist
from .pure_pursuit import (
    calculate_curvature,
    get_lookahead_distance,
    get_lookahead_point,
    pure_pursuit_velocity,
)

__all__ = [
    "interpolate_segment",
    "is_collision_imminent",
    "apply_accel_limit",
    "apply_kinematic_constraints",
    "clamp_velocities",
    "scale_for_path_end",
    "PlanStore",
    "find_closest_index",
    "get_max_transform_dist",
    "calculate_curvature",
    "get_lookahead_distance",
    "get_lookahead_point",
    "pure_pursuit_velocity",
]
