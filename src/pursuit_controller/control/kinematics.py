#!/usr/bin/env python3
"""
기구학 제한 모듈

Pure Pursuit이 제안한 속도 명령에 경로 끝 감속, 가감속 rate limiting,
최종 범위 클리핑을 순서대로 적용합니다.

알고리즘:
    1. 경로 끝 감속: |ld_req - ld_act| > 2 * res 이면
           v ← v * |ld_req - ld_act| / ld_req
    2. 가감속 제한 (선속도/각속도 각각):
           a = (u - u_prev) / dt
           a > a_max  → u = u_prev + a_max * dt
           a < -d_max → u = u_prev - d_max * dt
       dt가 없거나 0 이하이면 (첫 주기) 건너뜁니다.
    3. 범위 제한: ω ∈ [-ω_max, ω_max], v ∈ [0, v_desired]

Author: HYCU Autonomous Driving Team
"""
from typing import Optional, Tuple

import numpy as np

from ..config import ControllerConfig
from ..types import Twist


def scale_for_path_end(
    linear_vel: float,
    dist_error: float,
    lookahead_dist: float,
    resolution: float
) -> float:
    """경로 끝 접근 시 선속도 감속.

    전방 주시점이 요청 거리보다 충분히 가까우면 (경로가 끝나는 중)
    거리 오차 비율로 선속도를 줄입니다.
    """
    if dist_error > 2.0 * resolution and lookahead_dist > 0.0:
        return linear_vel * (dist_error / lookahead_dist)
    return linear_vel


def apply_accel_limit(
    target: float,
    current: float,
    max_accel: float,
    max_decel: float,
    dt: Optional[float]
) -> float:
    """가감속 제한 적용.

    Args:
        target: 제안 값
        current: 직전 명령 값
        max_accel: 최대 증가율 (단위/s)
        max_decel: 최대 감소율 (단위/s)
        dt: 직전 명령 이후 경과 시간 (초), None이면 제한 없음

    Returns:
        Rate-limited 값
    """
    if dt is None or not np.isfinite(dt) or dt <= 0.0:
        return target
    accel = (target - current) / dt
    if accel > max_accel:
        return current + max_accel * dt
    if accel < -max_decel:
        return current - max_decel * dt
    return target


def clamp_velocities(
    linear_vel: float,
    angular_vel: float,
    desired_linear_vel: float,
    max_angular_vel: float
) -> Tuple[float, float]:
    """최종 범위 제한: 후진 금지, 순항 속도 초과 금지."""
    angular_vel = float(np.clip(angular_vel, -max_angular_vel, max_angular_vel))
    linear_vel = float(np.clip(linear_vel, 0.0, desired_linear_vel))
    return linear_vel, angular_vel


def apply_kinematic_constraints(
    linear_vel: float,
    angular_vel: float,
    dist_error: float,
    lookahead_dist: float,
    dt: Optional[float],
    last_cmd: Twist,
    config: ControllerConfig,
    resolution: float
) -> Tuple[float, float]:
    """기구학 제한 전체 적용.

    Args:
        linear_vel, angular_vel: 제안 속도
        dist_error: 요청/실제 전방 주시 거리 차이 (m)
        lookahead_dist: 요청 전방 주시 거리 (m)
        dt: 직전 명령 이후 경과 시간 (초), 첫 주기는 None
        last_cmd: 직전 명령
        config: 제어기 설정
        resolution: 격자 해상도 (m/cell)

    Returns:
        (선속도, 각속도) 튜플
    """
    linear_vel = scale_for_path_end(linear_vel, dist_error, lookahead_dist, resolution)

    # TODO: separate accel/decel limits for the angular channel
    linear_vel = apply_accel_limit(
        linear_vel, last_cmd.linear, config.max_accel, config.max_decel, dt
    )
    angular_vel = apply_accel_limit(
        angular_vel, last_cmd.angular, config.max_accel, config.max_decel, dt
    )

    return clamp_velocities(
        linear_vel, angular_vel, config.desired_linear_vel, config.max_angular_vel
    )
