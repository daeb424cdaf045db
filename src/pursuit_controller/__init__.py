"""Pure Pursuit 경로 추종 제어기 패키지.

로봇 위치와 기준 경로로부터 선속도/각속도 명령을 계산합니다.
"""
from .config import ControllerConfig
from .controller import ControlResult, ControllerState, PurePursuitController
from .costmap import OccupancyGrid
from .errors import ControlError, TransformError
from .transforms import StaticTransformBuffer, TransformService, transform_pose
from .types import Path, Pose, Twist, TwistStamped

__all__ = [
    "ControllerConfig",
    "ControlResult",
    "ControllerState",
    "PurePursuitController",
    "OccupancyGrid",
    "ControlError",
    "TransformError",
    "StaticTransformBuffer",
    "TransformService",
    "transform_pose",
    "Path",
    "Pose",
    "Twist",
    "TwistStamped",
]

__version__ = "0.1.0"
