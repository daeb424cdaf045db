#!/usr/bin/env python3
"""
좌표 변환 모듈

제어기는 좌표 변환 서비스를 외부 기능으로 사용합니다. 서비스는
transform(pose, target_frame, timeout) 하나만 제공하면 되며, 실패 시
TransformError를 발생시킵니다. ROS 환경에서는 tf2_ros.Buffer 어댑터
(drivers.ros_node.TfTransformService)를, 그 외 환경에서는 메모리 기반
StaticTransformBuffer를 사용합니다.

Author: HYCU Autonomous Driving Team
"""
import logging
import threading
from math import atan2, cos, sin
from typing import Dict, Optional, Protocol, Tuple

import numpy as np

from .errors import TransformError
from .types import Pose

logger = logging.getLogger(__name__)


class TransformService(Protocol):
    """좌표 변환 서비스 인터페이스."""

    def transform(self, pose: Pose, target_frame: str, timeout: float) -> Pose:
        ...


def transform_pose(service: TransformService, target_frame: str,
                   pose: Pose, timeout: float) -> Optional[Pose]:
    """Pose를 target_frame으로 변환.

    좌표계가 이미 같으면 그대로 반환합니다. 변환 실패는 로그로 남기고
    None을 반환하므로 호출자가 실패 처리 방식을 결정합니다.

    Args:
        service: 좌표 변환 서비스
        target_frame: 대상 좌표계
        pose: 입력 Pose
        timeout: 변환 허용 시간 (초)

    Returns:
        변환된 Pose 또는 None
    """
    if pose.frame_id == target_frame:
        return pose
    try:
        return service.transform(pose, target_frame, timeout)
    except TransformError as e:
        logger.error(
            "Exception in transform_pose: %s -> %s at (%.3f, %.3f) stamp %.3f: %s",
            pose.frame_id, target_frame, pose.x, pose.y, pose.stamp, e,
        )
    return None


def _pose_matrix(x: float, y: float, yaw: float) -> np.ndarray:
    c, s = cos(yaw), sin(yaw)
    return np.array([[c, -s, x],
                     [s, c, y],
                     [0.0, 0.0, 1.0]])


class StaticTransformBuffer:
    """메모리 기반 평면 좌표 변환 트리.

    각 좌표계는 부모 좌표계 기준 (x, y, yaw)로 등록되며, 공통 루트를 통해
    임의의 두 좌표계 사이를 변환합니다. set_transform으로 갱신할 수 있으므로
    odom -> base_link 같은 동적 관계도 표현 가능합니다.
    """

    def __init__(self):
        self._parents: Dict[str, Tuple[str, np.ndarray]] = {}
        self._lock = threading.Lock()

    def set_transform(self, parent: str, child: str,
                      x: float, y: float, yaw: float) -> None:
        """child 좌표계 원점을 parent 좌표계 기준으로 등록."""
        if parent == child:
            raise ValueError(f"Frame {child} cannot be its own parent")
        with self._lock:
            self._parents[child] = (parent, _pose_matrix(x, y, yaw))

    def can_transform(self, source_frame: str, target_frame: str) -> bool:
        with self._lock:
            try:
                return self._to_root(source_frame)[0] == self._to_root(target_frame)[0]
            except TransformError:
                return False

    def _to_root(self, frame: str) -> Tuple[str, np.ndarray]:
        if not frame:
            raise TransformError("Empty frame id")
        matrix = np.eye(3)
        depth = 0
        while frame in self._parents:
            parent, local = self._parents[frame]
            matrix = local @ matrix
            frame = parent
            depth += 1
            if depth > len(self._parents):
                raise TransformError(f"Transform tree contains a loop at {frame}")
        return frame, matrix

    def transform(self, pose: Pose, target_frame: str, timeout: float) -> Pose:
        if pose.frame_id == target_frame:
            return pose
        with self._lock:
            source_root, source_matrix = self._to_root(pose.frame_id)
            target_root, target_matrix = self._to_root(target_frame)
        if source_root != target_root:
            raise TransformError(
                f"Could not find a connection between '{target_frame}' and "
                f"'{pose.frame_id}' because they are not part of the same tree"
            )
        m = np.linalg.inv(target_matrix) @ source_matrix @ _pose_matrix(pose.x, pose.y, pose.yaw)
        return Pose(
            x=float(m[0, 2]),
            y=float(m[1, 2]),
            yaw=float(atan2(m[1, 0], m[0, 0])),
            frame_id=target_frame,
            stamp=pose.stamp,
        )
