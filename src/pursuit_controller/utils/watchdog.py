#!/usr/bin/env python3
"""
Watchdog 상태머신 모듈

경로 추종 제어기의 안전 상태를 관리하는 상태머신입니다. 제어 주기 결과와
입력(odometry, costmap) freshness를 보고 명령을 내보낼지 결정합니다.

상태:
    TRACKING: 정상 추종
    DEGRADED: 일시적 주기 실패 (경로 없음, 변환 실패 등)
    STOPPING: 안전 정지

정지 사유:
    NONE: 정상
    NO_PLAN: 기준 경로 없음
    TRANSFORM_FAILED: 좌표 변환 지속 실패
    PLAN_EXHAUSTED: 변환 후 남은 경로 없음
    ODOM_STALE: Odometry 데이터 타임아웃
    COSTMAP_STALE: Costmap 데이터 타임아웃
    INACTIVE: 제어기 비활성
    COLLISION_IMMINENT: 충돌 예측 (latched, 새 경로 수신 시 해제)
    EMERGENCY_STOP: 비상 정지 (latched, 재시작 필요)

Author: HYCU Autonomous Driving Team
"""
from enum import Enum
from typing import Optional, Tuple
import time

from ..errors import ControlError


# =============================================================================
# Enums (ROS 의존성 없음)
# =============================================================================

class DriveState(Enum):
    """주행 상태 열거형."""
    TRACKING = 1  # 정상 추종
    DEGRADED = 2  # 일시적 실패
    STOPPING = 3  # 안전 정지


class StopReason(Enum):
    """정지 사유 열거형."""
    NONE = 0
    NO_PLAN = 1
    TRANSFORM_FAILED = 2
    PLAN_EXHAUSTED = 3
    ODOM_STALE = 4
    COSTMAP_STALE = 5
    INACTIVE = 6
    COLLISION_IMMINENT = 7
    EMERGENCY_STOP = 8


ERROR_STOP_REASONS = {
    ControlError.EMPTY_PLAN: StopReason.NO_PLAN,
    ControlError.FRAME_TRANSFORM_ERROR: StopReason.TRANSFORM_FAILED,
    ControlError.EMPTY_TRANSFORMED_PLAN: StopReason.PLAN_EXHAUSTED,
    ControlError.NOT_ACTIVE: StopReason.INACTIVE,
    ControlError.COLLISION_IMMINENT: StopReason.COLLISION_IMMINENT,
}

STALE_STOP_REASONS = {StopReason.ODOM_STALE, StopReason.COSTMAP_STALE}

# 주기 실패로 인한 정지: 제어 주기는 계속 돌며 성공 시 해제
FAILURE_STOP_REASONS = {
    StopReason.NO_PLAN,
    StopReason.TRANSFORM_FAILED,
    StopReason.PLAN_EXHAUSTED,
    StopReason.INACTIVE,
}


# =============================================================================
# Watchdog Class (ROS 선택적 의존)
# =============================================================================

class Watchdog:
    """안전 상태 관리 워치독.

    입력 데이터 freshness, 제어 주기 결과, E-stop 상태를 모니터링하여
    적절한 주행 상태를 결정합니다.

    ROS 환경에서는 rospy.Time 사용, 그 외에는 time.time() 사용.
    """

    def __init__(
        self,
        odom_timeout: float = 0.5,
        costmap_timeout: float = 1.0,
        failure_timeout: float = 1.0,
        recovery_timeout: float = 0.5,
        use_ros_time: bool = True
    ):
        """Watchdog 초기화.

        Args:
            odom_timeout: Odometry stale 판정 시간 (초)
            costmap_timeout: Costmap stale 판정 시간 (초)
            failure_timeout: 연속 주기 실패 시 STOPPING 전환 시간 (초)
            recovery_timeout: stale 해소 후 복구 대기 시간 (초)
            use_ros_time: True면 rospy.Time 사용, False면 time.time() 사용
        """
        self.odom_stale_timeout = odom_timeout
        self.costmap_stale_timeout = costmap_timeout
        self.failure_timeout = failure_timeout
        self.recovery_timeout = recovery_timeout
        self.use_ros_time = use_ros_time

        self.state = DriveState.TRACKING
        self.stop_reason = StopReason.NONE

        self._initialized = False
        self._rospy = None

        self.last_odom_time: Optional[float] = None
        self.last_costmap_time: Optional[float] = None
        self.last_valid_time: Optional[float] = None
        self.recovery_start_time: Optional[float] = None

        self.e_stop = False
        self.e_stop_latched = False
        self.collision_latched = False

    def _get_time(self) -> float:
        """현재 시간 반환 (ROS 또는 시스템 시간)."""
        if self.use_ros_time:
            if self._rospy is None:
                try:
                    import rospy
                    self._rospy = rospy
                except ImportError:
                    self.use_ros_time = False
                    return time.time()
            return self._rospy.Time.now().to_sec()
        return time.time()

    def _ensure_initialized(self) -> None:
        """시간 초기화 (lazy initialization)."""
        if not self._initialized:
            now = self._get_time()
            self.last_odom_time = now
            self.last_costmap_time = now
            self.last_valid_time = now
            self._initialized = True

    def _stop(self, reason: StopReason) -> Tuple[DriveState, StopReason]:
        self.state = DriveState.STOPPING
        self.stop_reason = reason
        self.recovery_start_time = None
        return self.state, self.stop_reason

    def update_sensor(self, sensor_type: str) -> None:
        """입력 데이터 수신 시간 갱신.

        Args:
            sensor_type: 'odom' 또는 'costmap'
        """
        self._ensure_initialized()
        now = self._get_time()
        if sensor_type == 'odom':
            self.last_odom_time = now
        elif sensor_type == 'costmap':
            self.last_costmap_time = now

    def update_odom_time(self) -> None:
        self.update_sensor('odom')

    def update_costmap_time(self) -> None:
        self.update_sensor('costmap')

    def set_estop(self, active: bool) -> None:
        """E-stop 상태 설정.

        E-stop이 활성화되면 latched 상태가 되어 노드 재시작 전까지 유지됩니다.
        """
        if active and not self.e_stop:
            self.e_stop_latched = True
        self.e_stop = active

    def on_new_plan(self) -> None:
        """새 경로 수신. 충돌 latch, 주기 실패 정지, 실패 타이머를 해제합니다."""
        self._ensure_initialized()
        self.collision_latched = False
        self.last_valid_time = self._get_time()
        if (self.state == DriveState.STOPPING and (
                self.stop_reason == StopReason.COLLISION_IMMINENT or
                self.stop_reason in FAILURE_STOP_REASONS)):
            self.state = DriveState.DEGRADED
            self.stop_reason = StopReason.NONE

    def check_watchdog(self) -> Tuple[DriveState, StopReason]:
        """입력 상태 및 안전 조건 확인.

        Returns:
            (현재 상태, 정지 사유) 튜플
        """
        self._ensure_initialized()
        now = self._get_time()

        # E-stop latch check - requires node restart to clear
        if self.e_stop_latched or self.e_stop:
            return self._stop(StopReason.EMERGENCY_STOP)

        if self.collision_latched:
            return self._stop(StopReason.COLLISION_IMMINENT)

        assert self.last_odom_time is not None  # Guaranteed by _ensure_initialized
        if now - self.last_odom_time > self.odom_stale_timeout:
            return self._stop(StopReason.ODOM_STALE)

        assert self.last_costmap_time is not None
        if now - self.last_costmap_time > self.costmap_stale_timeout:
            return self._stop(StopReason.COSTMAP_STALE)

        # Input recovery logic
        if self.state == DriveState.STOPPING and self.stop_reason in STALE_STOP_REASONS:
            if self.recovery_start_time is None:
                self.recovery_start_time = now
            elif (now - self.recovery_start_time) >= self.recovery_timeout:
                self.state = DriveState.DEGRADED
                self.stop_reason = StopReason.NONE
                self.recovery_start_time = None

        return self.state, self.stop_reason

    def report_cycle(self, error: Optional[ControlError]) -> Tuple[DriveState, StopReason]:
        """제어 주기 결과에 따른 상태 업데이트.

        Args:
            error: 주기 오류, 성공이면 None

        Returns:
            (현재 상태, 정지 사유) 튜플
        """
        self._ensure_initialized()
        now = self._get_time()

        if error is ControlError.COLLISION_IMMINENT:
            self.collision_latched = True
            return self._stop(StopReason.COLLISION_IMMINENT)

        # Safety gate: never override latched or stale stop reasons
        if self.state == DriveState.STOPPING and (
                self.stop_reason in STALE_STOP_REASONS or
                self.stop_reason in (StopReason.EMERGENCY_STOP, StopReason.COLLISION_IMMINENT)):
            return self.state, self.stop_reason

        if error is None:
            self.state = DriveState.TRACKING
            self.stop_reason = StopReason.NONE
            self.last_valid_time = now
            return self.state, self.stop_reason

        assert self.last_valid_time is not None  # Guaranteed by _ensure_initialized
        if now - self.last_valid_time > self.failure_timeout:
            return self._stop(ERROR_STOP_REASONS[error])

        if self.state != DriveState.STOPPING:
            self.state = DriveState.DEGRADED
        return self.state, self.stop_reason

    def allows_cycle(self) -> bool:
        """제어 주기 실행 여부.

        E-stop, 충돌, 입력 stale 정지 중에는 주기를 건너뜁니다. 주기 실패로
        인한 정지는 주기를 계속 실행해야 report_cycle이 성공을 보고 해제할 수
        있습니다.
        """
        return (self.state != DriveState.STOPPING or
                self.stop_reason in FAILURE_STOP_REASONS)

    def get_state(self) -> Tuple[DriveState, StopReason]:
        """현재 상태와 정지 사유 반환."""
        return self.state, self.stop_reason

    def get_stop_reason(self) -> StopReason:
        """현재 정지 사유 반환."""
        return self.stop_reason
