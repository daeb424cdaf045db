"""드라이버 모듈 패키지.

제어기를 구동하는 ROS 노드를 제공합니다. ROS 모듈은 노드 생성 시점에
import되므로 ROS 없이도 이 패키지를 import할 수 있습니다.
"""
from .ros_node import (
    PursuitControllerNode,
    TfTransformService,
    occupancy_grid_from_msg,
    path_from_msg,
    pose_from_msg,
)

__all__ = [
    "PursuitControllerNode",
    "TfTransformService",
    "occupancy_grid_from_msg",
    "path_from_msg",
    "pose_from_msg",
]
