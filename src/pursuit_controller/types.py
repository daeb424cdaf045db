#!/usr/bin/env python3
"""
경로 추종 제어기 데이터 타입 모듈

제어 주기마다 주고받는 위치/속도/경로 값 타입을 정의합니다.
모든 좌표는 평면(x, y, yaw) 기준이며, 각 값은 소속 좌표계(frame_id)와
타임스탬프(초)를 함께 가집니다.

Author: HYCU Autonomous Driving Team
"""
from dataclasses import dataclass, field, replace
from math import atan2, cos, hypot, sin
from typing import List, Optional


def yaw_from_quaternion(qx: float, qy: float, qz: float, qw: float) -> float:
    """쿼터니언에서 yaw(z축 회전) 추출."""
    return atan2(2.0 * (qw * qz + qx * qy), 1.0 - 2.0 * (qy * qy + qz * qz))


@dataclass(frozen=True)
class Pose:
    """평면 위치 및 자세.

    Attributes:
        x, y: 위치 (m)
        yaw: 방위각 (rad)
        frame_id: 기준 좌표계 이름
        stamp: 타임스탬프 (초)
    """
    x: float = 0.0
    y: float = 0.0
    yaw: float = 0.0
    frame_id: str = ""
    stamp: float = 0.0

    def distance_to(self, other: "Pose") -> float:
        return hypot(self.x - other.x, self.y - other.y)

    def with_frame(self, frame_id: str, stamp: Optional[float] = None) -> "Pose":
        if stamp is None:
            stamp = self.stamp
        return replace(self, frame_id=frame_id, stamp=stamp)

    def to_world(self, x: float, y: float):
        """이 자세 기준 좌표 (x, y)를 상위 좌표계로 변환."""
        c, s = cos(self.yaw), sin(self.yaw)
        return self.x + c * x - s * y, self.y + s * x + c * y


@dataclass(frozen=True)
class Twist:
    """선속도(m/s)와 각속도(rad/s)."""
    linear: float = 0.0
    angular: float = 0.0


@dataclass(frozen=True)
class TwistStamped:
    """타임스탬프가 붙은 속도 명령.

    stamp가 None이면 시각이 정해지지 않은 상태(첫 주기 이전)입니다.
    """
    twist: Twist = field(default_factory=Twist)
    frame_id: str = ""
    stamp: Optional[float] = None


@dataclass
class Path:
    """동일 좌표계를 공유하는 순서 있는 Pose 목록."""
    frame_id: str = ""
    poses: List[Pose] = field(default_factory=list)
    stamp: float = 0.0

    def __len__(self) -> int:
        return len(self.poses)

    def copy(self) -> "Path":
        return Path(self.frame_id, list(self.poses), self.stamp)
