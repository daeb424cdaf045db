#!/usr/bin/env python3
"""
충돌 예측 (안전 게이트) 모듈

로봇 위치와 전방 주시점(carrot) 사이 직선을 격자 해상도 간격으로
샘플링하여 치명 셀이 있는지 확인합니다.

샘플링:
    n = max(1, ceil(L / res)) 구간, 양 끝점 포함 n + 1개 점
    격자 밖의 점은 판단할 수 없으므로 건너뜁니다.

Author: HYCU Autonomous Driving Team
"""
from math import ceil, hypot
from typing import Iterator, Tuple

import numpy as np

from ..types import Pose


def interpolate_segment(
    start: Tuple[float, float],
    end: Tuple[float, float],
    resolution: float
) -> Iterator[Tuple[float, float]]:
    """start에서 end까지 resolution 간격 보간점 (양 끝 포함)."""
    length = hypot(end[0] - start[0], end[1] - start[1])
    steps = max(1, int(ceil(length / resolution)))
    for t in np.linspace(0.0, 1.0, steps + 1):
        yield (start[0] + t * (end[0] - start[0]),
               start[1] + t * (end[1] - start[1]))


def is_collision_imminent(robot_pose: Pose, carrot: Pose, costmap) -> bool:
    """로봇 -> carrot 직선 경로의 충돌 여부.

    Args:
        robot_pose: 격자 좌표계 기준 로봇 위치
        carrot: 로봇 좌표계 기준 전방 주시점
        costmap: 점유 격자 (resolution, world_to_map, is_lethal)

    Returns:
        치명 셀을 발견하면 True
    """
    start = (robot_pose.x, robot_pose.y)
    end = robot_pose.to_world(carrot.x, carrot.y)

    for x, y in interpolate_segment(start, end, costmap.resolution):
        cell = costmap.world_to_map(x, y)
        if cell is None:
            continue
        if costmap.is_lethal(cell[0], cell[1]):
            return True
    return False
