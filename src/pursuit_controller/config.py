#!/usr/bin/env python3
"""
제어기 설정 모듈

Pure Pursuit 제어기 파라미터를 정의합니다. 설정은 시작 시 한 번 로드되며
이후 변경되지 않습니다 (frozen dataclass).

파라미터 (기본값):
    desired_linear_vel (0.5)    - 목표 순항 선속도 (m/s)
    max_accel (1.0)             - 최대 가속도 (선속도/각속도 공용)
    max_decel (1.0)             - 최대 감속도 (선속도/각속도 공용)
    lookahead_dist (0.4)        - 고정 전방 주시 거리 (m)
    min_lookahead_dist (0.3)    - 속도 비례 모드 최소 거리 (m)
    max_lookahead_dist (0.6)    - 속도 비례 모드 최대 거리 (m)
    lookahead_gain (1.5)        - 속도당 전방 주시 거리 (s)
    max_angular_vel (1.0)       - 최대 각속도 (rad/s)
    transform_tolerance (0.1)   - 좌표 변환 허용 시간 (s)
    use_velocity_scaled_lookahead_dist (False)

Author: HYCU Autonomous Driving Team
"""
from dataclasses import dataclass, fields
from typing import Any, Callable


@dataclass(frozen=True)
class ControllerConfig:
    """Pure Pursuit 제어기 설정."""
    desired_linear_vel: float = 0.5
    max_accel: float = 1.0
    max_decel: float = 1.0
    lookahead_dist: float = 0.4
    min_lookahead_dist: float = 0.3
    max_lookahead_dist: float = 0.6
    lookahead_gain: float = 1.5
    max_angular_vel: float = 1.0
    transform_tolerance: float = 0.1
    use_velocity_scaled_lookahead_dist: bool = False

    # Host parameters
    robot_base_frame: str = "base_link"
    control_frequency: float = 20.0
    lethal_cost: int = 100

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """파라미터 유효성 검사.

        Raises:
            ValueError: 음수 속도/가속도, 잘못된 lookahead 범위 등
        """
        for name in ("desired_linear_vel", "max_accel", "max_decel",
                     "max_angular_vel", "transform_tolerance"):
            if getattr(self, name) < 0.0:
                raise ValueError(f"{name} must be non-negative, got {getattr(self, name)}")
        if self.lookahead_dist <= 0.0:
            raise ValueError(f"lookahead_dist must be positive, got {self.lookahead_dist}")
        if self.min_lookahead_dist > self.max_lookahead_dist:
            raise ValueError(
                f"min_lookahead_dist ({self.min_lookahead_dist}) exceeds "
                f"max_lookahead_dist ({self.max_lookahead_dist})"
            )
        if self.control_frequency <= 0.0:
            raise ValueError(f"control_frequency must be positive, got {self.control_frequency}")

    @classmethod
    def from_params(cls, get_param: Callable[[str, Any], Any],
                    prefix: str = "~") -> "ControllerConfig":
        """파라미터 서버에서 설정 로드.

        Args:
            get_param: rospy.get_param 형태의 함수 (key, default) -> value
            prefix: 파라미터 이름 접두사 (기본 private namespace '~')

        Returns:
            로드된 ControllerConfig
        """
        defaults = cls()
        values = {}
        for f in fields(cls):
            default = getattr(defaults, f.name)
            value = get_param(prefix + f.name, default)
            # Keep declared types (YAML may deliver ints for float params)
            if isinstance(default, bool):
                value = bool(value)
            elif isinstance(default, float):
                value = float(value)
            elif isinstance(default, int):
                value = int(value)
            values[f.name] = value
        return cls(**values)
