#!/usr/bin/env python3
"""
점유 격자 맵 모듈

안전 게이트와 경로 변환 범위 계산에 사용하는 2D 점유 격자입니다.
셀 값은 nav_msgs/OccupancyGrid 규약을 따릅니다.

    -1: 미탐색 (unknown)
     0: 빈 공간
   100: 점유

좌표계:
    origin_x, origin_y는 (0, 0) 셀의 모서리 월드 좌표이며 격자는 frame_id
    좌표계 축에 정렬되어 있다고 가정합니다. 배열 인덱스는 [my, mx] 순서입니다.

Author: HYCU Autonomous Driving Team
"""
from typing import Optional, Tuple

import numpy as np

NO_INFORMATION = -1
FREE_SPACE = 0
LETHAL_OBSTACLE = 100


class OccupancyGrid:
    """numpy 기반 점유 격자."""

    def __init__(
        self,
        data: np.ndarray,
        resolution: float,
        origin_x: float = 0.0,
        origin_y: float = 0.0,
        frame_id: str = "map",
        lethal_cost: int = LETHAL_OBSTACLE
    ):
        if resolution <= 0.0:
            raise ValueError(f"resolution must be positive, got {resolution}")
        data = np.asarray(data, dtype=np.int16)
        if data.ndim != 2:
            raise ValueError(f"grid data must be 2-D, got shape {data.shape}")
        self.data = data
        self.resolution = float(resolution)
        self.origin_x = float(origin_x)
        self.origin_y = float(origin_y)
        self.frame_id = frame_id
        self.lethal_cost = lethal_cost

    @classmethod
    def empty(cls, width: int, height: int, resolution: float,
              origin_x: float = 0.0, origin_y: float = 0.0,
              frame_id: str = "map") -> "OccupancyGrid":
        return cls(np.zeros((height, width), dtype=np.int16), resolution,
                   origin_x, origin_y, frame_id)

    @classmethod
    def centered(cls, size_m: float, resolution: float,
                 center_x: float = 0.0, center_y: float = 0.0,
                 frame_id: str = "map") -> "OccupancyGrid":
        """(center_x, center_y)를 중심으로 하는 정사각형 빈 격자."""
        cells = int(round(size_m / resolution))
        half = cells * resolution / 2.0
        return cls.empty(cells, cells, resolution,
                         center_x - half, center_y - half, frame_id)

    @property
    def size_in_cells_x(self) -> int:
        return int(self.data.shape[1])

    @property
    def size_in_cells_y(self) -> int:
        return int(self.data.shape[0])

    def world_to_map(self, x: float, y: float) -> Optional[Tuple[int, int]]:
        """월드 좌표 -> 셀 인덱스. 격자 밖이면 None."""
        if x < self.origin_x or y < self.origin_y:
            return None
        mx = int((x - self.origin_x) / self.resolution)
        my = int((y - self.origin_y) / self.resolution)
        if mx >= self.size_in_cells_x or my >= self.size_in_cells_y:
            return None
        return mx, my

    def map_to_world(self, mx: int, my: int) -> Tuple[float, float]:
        """셀 중심 월드 좌표."""
        return (self.origin_x + (mx + 0.5) * self.resolution,
                self.origin_y + (my + 0.5) * self.resolution)

    def get_cost(self, mx: int, my: int) -> int:
        return int(self.data[my, mx])

    def set_cost(self, mx: int, my: int, cost: int) -> None:
        self.data[my, mx] = cost

    def is_lethal(self, mx: int, my: int) -> bool:
        """치명 셀 여부. 미탐색(-1)은 치명으로 보지 않습니다."""
        return self.get_cost(mx, my) >= self.lethal_cost

    def mark_obstacle(self, x: float, y: float) -> bool:
        """월드 좌표 위치를 점유 셀로 표시. 격자 밖이면 False."""
        cell = self.world_to_map(x, y)
        if cell is None:
            return False
        self.set_cost(cell[0], cell[1], LETHAL_OBSTACLE)
        return True
