#!/usr/bin/env python3
"""
Pure Pursuit 경로 추종 제어기

로봇 현재 위치와 기준 경로로부터 선속도/각속도 명령을 계산합니다.
호스트(ROS 노드, 시뮬레이터, 테스트)가 configure/activate 후 고정 주기로
compute_velocity_commands를 호출하는 구조입니다.

제어 주기:
    Plan Store → 변환/가지치기 → 전방 주시점 선택 → Pure Pursuit 조향
    → 기구학 제한 → 충돌 예측 → 명령 출력

오류 처리:
    주기를 중단시키는 조건은 예외 대신 ControlResult.error(ControlError)로
    반환합니다. 오류가 발생한 주기에는 명령을 내지 않고 직전 명령 상태도
    바꾸지 않습니다.

Author: HYCU Autonomous Driving Team
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from .config import ControllerConfig
from .control.collision import is_collision_imminent
from .control.kinematics import apply_kinematic_constraints
from .control.plan import PlanStore
from .control.pure_pursuit import (
    get_lookahead_distance,
    get_lookahead_point,
    pure_pursuit_velocity,
)
from .errors import ControlError
from .transforms import TransformService, transform_pose
from .types import Path, Pose, Twist, TwistStamped

logger = logging.getLogger(__name__)

PathPublisher = Callable[[Path], None]


@dataclass
class ControllerState:
    """주기 간 유지되는 제어기 상태."""
    last_cmd: TwistStamped = field(default_factory=TwistStamped)

    def elapsed_since_last_cmd(self, stamp: float) -> Optional[float]:
        """직전 명령 이후 경과 시간. 첫 주기에는 None."""
        if self.last_cmd.stamp is None:
            return None
        return stamp - self.last_cmd.stamp


@dataclass
class ControlResult:
    """제어 주기 결과."""
    cmd: Optional[TwistStamped] = None
    error: Optional[ControlError] = None
    transformed_plan: Optional[Path] = None
    carrot: Optional[Pose] = None
    lookahead_dist: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def is_safety_abort(self) -> bool:
        return self.error is not None and self.error.is_safety_abort


class PurePursuitController:
    """Pure Pursuit 제어기."""

    def __init__(self):
        self.plugin_name = ""
        self.config = ControllerConfig()
        self.state = ControllerState()
        self.plan_store = PlanStore()

        self.transforms: Optional[TransformService] = None
        self.costmap = None
        self.plan_publisher: Optional[PathPublisher] = None
        self.global_plan_publisher: Optional[PathPublisher] = None

        self.configured = False
        self.active = False

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def configure(
        self,
        name: str,
        transforms: TransformService,
        costmap=None,
        config: Optional[ControllerConfig] = None,
        plan_publisher: Optional[PathPublisher] = None,
        global_plan_publisher: Optional[PathPublisher] = None
    ) -> None:
        """제어기 설정.

        Args:
            name: 제어기 이름 (로그용)
            transforms: 좌표 변환 서비스
            costmap: 지역 점유 격자 (set_costmap으로 나중에 지정 가능)
            config: 제어기 설정, None이면 기본값
            plan_publisher: 변환된 지역 경로 발행 함수
            global_plan_publisher: 수신한 전역 경로 발행 함수
        """
        self.plugin_name = name
        self.transforms = transforms
        self.costmap = costmap
        self.config = config if config is not None else ControllerConfig()
        self.plan_publisher = plan_publisher
        self.global_plan_publisher = global_plan_publisher
        self.state = ControllerState()
        self.configured = True
        logger.info(
            "Configuring controller: %s (desired_linear_vel=%.2f, lookahead=%.2f, "
            "velocity_scaled=%s)",
            name, self.config.desired_linear_vel, self.config.lookahead_dist,
            self.config.use_velocity_scaled_lookahead_dist,
        )

    def activate(self) -> None:
        if not self.configured:
            raise RuntimeError("Controller must be configured before activation")
        logger.info("Activating controller: %s of type PurePursuitController", self.plugin_name)
        self.active = True

    def deactivate(self) -> None:
        logger.info("Deactivating controller: %s of type PurePursuitController", self.plugin_name)
        self.active = False

    def cleanup(self) -> None:
        logger.info("Cleaning up controller: %s of type PurePursuitController", self.plugin_name)
        self.active = False
        self.configured = False
        self.plan_store.clear()
        self.state = ControllerState()
        self.transforms = None
        self.costmap = None
        self.plan_publisher = None
        self.global_plan_publisher = None

    # =========================================================================
    # Inputs
    # =========================================================================

    def set_plan(self, path: Path) -> None:
        """새 전역 경로 수신. 직전 명령 상태는 유지합니다."""
        if self.global_plan_publisher is not None:
            self.global_plan_publisher(path)
        self.plan_store.set_plan(path)
        logger.debug("New plan with %d poses in '%s'", len(path.poses), path.frame_id)

    def set_costmap(self, costmap) -> None:
        self.costmap = costmap

    # =========================================================================
    # Control cycle
    # =========================================================================

    def compute_velocity_commands(
        self,
        pose: Pose,
        speed: Twist,
        now: Optional[float] = None
    ) -> ControlResult:
        """한 제어 주기 실행.

        Args:
            pose: 현재 로봇 위치 (타임스탬프 포함)
            speed: 현재 측정 속도 (속도 비례 전방 주시용)
            now: 주기 시각 (초). 명령 타임스탬프와 가속 제한 dt의 기준이며,
                None이면 pose.stamp 사용

        Returns:
            ControlResult
        """
        if not self.active:
            logger.warning("Controller %s is not active, ignoring cycle", self.plugin_name)
            return ControlResult(error=ControlError.NOT_ACTIVE)
        if self.costmap is None:
            raise RuntimeError("No costmap available for controller " + self.plugin_name)

        cfg = self.config
        costmap = self.costmap

        transformed_plan, error = self.plan_store.transform_global_plan(
            pose, self.transforms, costmap,
            cfg.robot_base_frame, cfg.transform_tolerance
        )
        if transformed_plan is not None and self.plan_publisher is not None:
            self.plan_publisher(transformed_plan)
        if error is not None:
            return ControlResult(error=error, transformed_plan=transformed_plan)

        lookahead_dist = get_lookahead_distance(
            speed.linear,
            lookahead_dist=cfg.lookahead_dist,
            use_velocity_scaled=cfg.use_velocity_scaled_lookahead_dist,
            lookahead_gain=cfg.lookahead_gain,
            min_lookahead_dist=cfg.min_lookahead_dist,
            max_lookahead_dist=cfg.max_lookahead_dist,
        )
        carrot = get_lookahead_point(transformed_plan.poses, lookahead_dist)

        linear_vel, angular_vel, carrot_dist = pure_pursuit_velocity(
            carrot, cfg.desired_linear_vel
        )

        cycle_stamp = pose.stamp if now is None else now
        dt = self.state.elapsed_since_last_cmd(cycle_stamp)
        linear_vel, angular_vel = apply_kinematic_constraints(
            linear_vel, angular_vel,
            abs(lookahead_dist - carrot_dist), lookahead_dist, dt,
            self.state.last_cmd.twist, cfg, costmap.resolution
        )

        robot_in_grid = transform_pose(
            self.transforms, costmap.frame_id, pose, cfg.transform_tolerance
        )
        if robot_in_grid is None:
            logger.error(
                "Unable to place robot pose from '%s' into costmap frame '%s' "
                "for collision checking",
                pose.frame_id, costmap.frame_id,
            )
            return ControlResult(
                error=ControlError.FRAME_TRANSFORM_ERROR,
                transformed_plan=transformed_plan,
                carrot=carrot,
                lookahead_dist=lookahead_dist,
            )

        if is_collision_imminent(robot_in_grid, carrot, costmap):
            logger.error(
                "Collision imminent! robot (%.3f, %.3f) in '%s' -> carrot (%.3f, %.3f) "
                "in '%s', distance %.2f m",
                robot_in_grid.x, robot_in_grid.y, costmap.frame_id,
                carrot.x, carrot.y, carrot.frame_id, carrot_dist,
            )
            return ControlResult(
                error=ControlError.COLLISION_IMMINENT,
                transformed_plan=transformed_plan,
                carrot=carrot,
                lookahead_dist=lookahead_dist,
            )

        cmd = TwistStamped(
            twist=Twist(linear=linear_vel, angular=angular_vel),
            frame_id=pose.frame_id,
            stamp=cycle_stamp,
        )
        self.state.last_cmd = cmd
        return ControlResult(
            cmd=cmd,
            transformed_plan=transformed_plan,
            carrot=carrot,
            lookahead_dist=lookahead_dist,
        )
