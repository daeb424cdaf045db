#!/usr/bin/env python3
"""
경로 저장 및 변환/가지치기 모듈

외부 플래너가 보낸 전역 경로를 저장하고, 매 제어 주기마다 로봇 좌표계로
변환합니다. 변환 시 이미 지나온 앞부분을 잘라내어(pruning) 다음 주기에는
남은 경로만 탐색합니다.

알고리즘:
    1. 로봇 위치를 경로 좌표계로 변환
    2. 로봇과 가장 가까운 경로 점 탐색 (동률이면 앞쪽 점)
    3. 그 점부터 앞으로 진행하며 max_transform_dist를 처음 넘는 점에서 중단
           max_transform_dist = max(W, H) * res / 2
    4. 남은 점들을 로봇 좌표계로 변환 (개별 실패 점은 제외)
    5. 가장 가까운 점 이전의 경로를 저장소에서 삭제

동시성:
    경로 교체(set_plan)와 변환/가지치기는 하나의 Lock으로 직렬화되어
    제어 주기가 교체 중인 경로를 보지 않습니다.

Author: HYCU Autonomous Driving Team
"""
import logging
import threading
from typing import Optional, Tuple

import numpy as np

from ..errors import ControlError
from ..transforms import TransformService, transform_pose
from ..types import Path, Pose

logger = logging.getLogger(__name__)


def get_max_transform_dist(costmap) -> float:
    """지역 맵 가시 범위의 절반 (m)."""
    max_costmap_dim = max(costmap.size_in_cells_x, costmap.size_in_cells_y)
    return max_costmap_dim * costmap.resolution / 2.0


def find_closest_index(poses, robot_pose: Pose) -> int:
    """로봇과 가장 가까운 경로 점 인덱스. 동률이면 첫 번째 점."""
    xy = np.array([[p.x, p.y] for p in poses], dtype=float)
    dists = np.hypot(xy[:, 0] - robot_pose.x, xy[:, 1] - robot_pose.y)
    return int(np.argmin(dists))


def find_transform_end(poses, begin: int, robot_pose: Pose,
                       max_transform_dist: float) -> int:
    """begin 이후 max_transform_dist를 처음 넘는 점의 인덱스 (없으면 len)."""
    for i in range(begin, len(poses)):
        if poses[i].distance_to(robot_pose) > max_transform_dist:
            return i
    return len(poses)


class PlanStore:
    """현재 기준 경로 저장소."""

    def __init__(self):
        self._plan = Path()
        self._lock = threading.Lock()

    def set_plan(self, path: Path) -> None:
        """경로 전체 교체."""
        with self._lock:
            self._plan = path.copy()

    def get_plan(self) -> Path:
        """저장된 경로 스냅샷."""
        with self._lock:
            return self._plan.copy()

    def clear(self) -> None:
        with self._lock:
            self._plan = Path()

    def __len__(self) -> int:
        with self._lock:
            return len(self._plan)

    def transform_global_plan(
        self,
        robot_pose: Pose,
        transforms: TransformService,
        costmap,
        base_frame: str,
        transform_tolerance: float
    ) -> Tuple[Optional[Path], Optional[ControlError]]:
        """저장된 경로를 로봇 좌표계로 변환하고 지나온 부분을 삭제.

        Args:
            robot_pose: 현재 로봇 위치 (임의 좌표계)
            transforms: 좌표 변환 서비스
            costmap: 지역 점유 격자 (크기/해상도 조회용)
            base_frame: 로봇 기준 좌표계 이름
            transform_tolerance: 변환 허용 시간 (초)

        Returns:
            (변환된 경로, 오류) 튜플. EMPTY_PLAN/FRAME_TRANSFORM_ERROR이면
            경로는 None, EMPTY_TRANSFORMED_PLAN이면 빈 경로를 함께 반환합니다.
        """
        with self._lock:
            plan = self._plan
            if not plan.poses:
                logger.error("Received plan with zero length")
                return None, ControlError.EMPTY_PLAN

            robot_in_plan = transform_pose(
                transforms, plan.frame_id, robot_pose, transform_tolerance
            )
            if robot_in_plan is None:
                logger.error(
                    "Unable to transform robot pose (%.3f, %.3f) from '%s' into "
                    "global plan's frame '%s'",
                    robot_pose.x, robot_pose.y, robot_pose.frame_id, plan.frame_id,
                )
                return None, ControlError.FRAME_TRANSFORM_ERROR

            max_transform_dist = get_max_transform_dist(costmap)
            begin = find_closest_index(plan.poses, robot_in_plan)
            end = find_transform_end(plan.poses, begin, robot_in_plan, max_transform_dist)

            transformed = Path(frame_id=base_frame, stamp=robot_pose.stamp)
            for global_pose in plan.poses[begin:end]:
                stamped = global_pose.with_frame(plan.frame_id, robot_pose.stamp)
                local_pose = transform_pose(
                    transforms, base_frame, stamped, transform_tolerance
                )
                if local_pose is None:
                    # Dropped locally; only fatal if nothing survives
                    continue
                transformed.poses.append(local_pose)

            # Prune the part of the plan we have already passed
            del plan.poses[:begin]

        if not transformed.poses:
            logger.error(
                "Resulting plan has 0 poses in it (robot at (%.3f, %.3f) in '%s', "
                "closest index %d, window %d poses, max_transform_dist %.2f m)",
                robot_in_plan.x, robot_in_plan.y, plan.frame_id,
                begin, end - begin, max_transform_dist,
            )
            return transformed, ControlError.EMPTY_TRANSFORMED_PLAN

        return transformed, None
