#!/usr/bin/env python3
"""
Pure Pursuit 조향 알고리즘 모듈

기하학적 경로 추종 알고리즘으로, 로봇 좌표계로 변환된 경로 위의
전방 주시점(carrot)을 향한 원호의 곡률을 계산합니다.

알고리즘:
    κ = 2 * y / ld²
    ω = v * κ

    여기서:
    - κ: 곡률 (curvature), 부호는 회전 방향 (+ 좌회전)
    - y: 로봇 좌표계에서 전방 주시점의 횡방향 위치
    - ld: 로봇에서 전방 주시점까지 거리
    - v: 목표 선속도, ω: 각속도

참고문헌:
    [1] Coulter, R.C. (1992). "Implementation of the Pure Pursuit Path Tracking
        Algorithm". CMU-RI-TR-92-01, Carnegie Mellon University.
    [2] Snider, J.M. (2009). "Automatic Steering Methods for Autonomous
        Automobile Path Tracking". CMU-RI-TR-09-08.

Author: HYCU Autonomous Driving Team
"""
from math import hypot
from typing import List, Optional, Tuple

import numpy as np

from ..types import Pose

CURVATURE_EPSILON = 0.001


def get_lookahead_distance(
    current_speed: float,
    lookahead_dist: float = 0.4,
    use_velocity_scaled: bool = False,
    lookahead_gain: float = 1.5,
    min_lookahead_dist: float = 0.3,
    max_lookahead_dist: float = 0.6
) -> float:
    """전방 주시 거리 계산.

    속도 비례 모드에서는 현재 선속도에 gain을 곱한 뒤 [min, max]로
    클리핑하고, 아니면 고정 거리를 사용합니다.

    Args:
        current_speed: 현재 측정 선속도 (m/s)
        lookahead_dist: 고정 전방 주시 거리 (m)
        use_velocity_scaled: 속도 비례 모드 여부
        lookahead_gain: 속도당 거리 (s)
        min_lookahead_dist: 최소 거리 (m)
        max_lookahead_dist: 최대 거리 (m)

    Returns:
        전방 주시 거리 (m)
    """
    if not use_velocity_scaled:
        return lookahead_dist
    return float(np.clip(current_speed * lookahead_gain,
                         min_lookahead_dist, max_lookahead_dist))


def get_lookahead_point(
    local_plan: List[Pose],
    lookahead_dist: float
) -> Optional[Pose]:
    """전방 주시점 선택.

    로봇(원점)으로부터 lookahead_dist 이상 떨어진 첫 번째 점을 반환합니다.
    그런 점이 없으면 경로 끝에 가까워진 것이므로 마지막 점을 반환합니다.

    Args:
        local_plan: 로봇 좌표계 경로
        lookahead_dist: 전방 주시 거리 (m)

    Returns:
        전방 주시점 Pose, 경로가 비어 있으면 None
    """
    if not local_plan:
        return None

    for pose in local_plan:
        if hypot(pose.x, pose.y) >= lookahead_dist:
            return pose

    return local_plan[-1]


def calculate_curvature(carrot: Pose, carrot_dist: float) -> float:
    """로봇 진행 방향에 접하고 carrot을 지나는 원호의 곡률.

    거리가 CURVATURE_EPSILON 이하이면 0을 반환합니다.
    """
    if carrot_dist <= CURVATURE_EPSILON:
        return 0.0
    return 2.0 * carrot.y / (carrot_dist * carrot_dist)


def pure_pursuit_velocity(
    carrot: Pose,
    desired_linear_vel: float
) -> Tuple[float, float, float]:
    """Pure Pursuit 속도 명령 계산.

    Args:
        carrot: 로봇 좌표계 전방 주시점
        desired_linear_vel: 목표 선속도 (m/s)

    Returns:
        (선속도, 각속도, carrot 거리) 튜플
    """
    carrot_dist = hypot(carrot.x, carrot.y)
    curvature = calculate_curvature(carrot, carrot_dist)

    linear_vel = desired_linear_vel
    angular_vel = linear_vel * curvature
    return linear_vel, angular_vel, carrot_dist
