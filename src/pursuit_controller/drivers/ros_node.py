#!/usr/bin/env python3
"""
Pure Pursuit Controller Node - 경로 추종 제어기 ROS 노드

구조:
    - controller.py: 호스트 독립 Pure Pursuit 제어기
    - control/*: 경로 변환, 조향, 기구학 제한, 충돌 예측
    - utils/watchdog.py: 안전 상태머신

=============================================================================
ROS 토픽 (Topics)
=============================================================================
Subscribe:
    ~plan (nav_msgs/Path)               - 외부 플래너 전역 경로
    ~odom (nav_msgs/Odometry)           - 로봇 위치/속도
    ~costmap (nav_msgs/OccupancyGrid)   - 지역 점유 격자
    ~e_stop (std_msgs/Bool)             - 비상 정지 (latched)

Publish:
    ~cmd_vel (geometry_msgs/Twist)          - 속도 명령
    ~received_global_plan (nav_msgs/Path)   - 수신한 전역 경로
    ~local_plan (nav_msgs/Path)             - 로봇 좌표계 변환 경로
    ~state (std_msgs/String)                - Watchdog 상태

Author: HYCU Autonomous Driving Team
"""
import threading
from math import isfinite
from typing import Optional

import numpy as np

from ..config import ControllerConfig
from ..controller import PurePursuitController
from ..costmap import OccupancyGrid
from ..errors import TransformError
from ..types import Path, Pose, Twist, yaw_from_quaternion
from ..utils.watchdog import Watchdog


# =============================================================================
# Message conversion (ROS 의존성 없음 - 테스트 가능)
# =============================================================================

def pose_from_msg(pose_msg, frame_id: str, stamp: float) -> Pose:
    """geometry_msgs/Pose -> Pose."""
    q = pose_msg.orientation
    return Pose(
        x=float(pose_msg.position.x),
        y=float(pose_msg.position.y),
        yaw=yaw_from_quaternion(q.x, q.y, q.z, q.w),
        frame_id=frame_id,
        stamp=stamp,
    )


def path_from_msg(msg) -> Path:
    """nav_msgs/Path -> Path. 개별 pose의 frame이 비어 있으면 경로 frame 사용."""
    frame_id = msg.header.frame_id
    stamp = msg.header.stamp.to_sec()
    poses = []
    for ps in msg.poses:
        pose_stamp = ps.header.stamp.to_sec() or stamp
        poses.append(pose_from_msg(ps.pose, ps.header.frame_id or frame_id, pose_stamp))
    return Path(frame_id=frame_id, poses=poses, stamp=stamp)


def occupancy_grid_from_msg(msg, lethal_cost: int = 100) -> OccupancyGrid:
    """nav_msgs/OccupancyGrid -> OccupancyGrid (origin 회전은 무시)."""
    info = msg.info
    data = np.array(msg.data, dtype=np.int16).reshape(info.height, info.width)
    return OccupancyGrid(
        data,
        resolution=info.resolution,
        origin_x=info.origin.position.x,
        origin_y=info.origin.position.y,
        frame_id=msg.header.frame_id,
        lethal_cost=lethal_cost,
    )


# =============================================================================
# tf2 adapter
# =============================================================================

class TfTransformService:
    """tf2_ros.Buffer를 제어기 좌표 변환 인터페이스로 감싸는 어댑터."""

    def __init__(self, buffer, rospy, tf2_ros, pose_stamped_cls, tft):
        self.buffer = buffer
        self.rospy = rospy
        self.tf2_ros = tf2_ros
        self.PoseStamped = pose_stamped_cls
        self.tft = tft

    def transform(self, pose: Pose, target_frame: str, timeout: float) -> Pose:
        ps = self.PoseStamped()
        ps.header.frame_id = pose.frame_id
        ps.header.stamp = self.rospy.Time.from_sec(pose.stamp)
        ps.pose.position.x = pose.x
        ps.pose.position.y = pose.y
        q = self.tft.quaternion_from_euler(0.0, 0.0, pose.yaw)
        ps.pose.orientation.x = q[0]
        ps.pose.orientation.y = q[1]
        ps.pose.orientation.z = q[2]
        ps.pose.orientation.w = q[3]

        try:
            out = self.buffer.transform(ps, target_frame, self.rospy.Duration(timeout))
        except self.tf2_ros.TransformException as e:
            raise TransformError(str(e)) from e

        return pose_from_msg(out.pose, target_frame, pose.stamp)


# =============================================================================
# ROS Node
# =============================================================================

class PursuitControllerNode:
    """경로 추종 제어기 ROS 노드.

    Pure Pursuit 제어기, tf2 좌표 변환, Watchdog 안전 시스템을 통합합니다.
    """

    def __init__(self):
        # Lazy import ROS
        import rospy
        import tf2_ros
        import tf2_geometry_msgs  # noqa: F401  (registers PoseStamped with tf2)
        import tf.transformations as tft
        from geometry_msgs.msg import PoseStamped, Twist as TwistMsg
        from nav_msgs.msg import OccupancyGrid as OccupancyGridMsg
        from nav_msgs.msg import Odometry, Path as PathMsg
        from std_msgs.msg import Bool, String

        self.rospy = rospy
        self.tft = tft
        self.PoseStamped = PoseStamped
        self.TwistMsg = TwistMsg
        self.PathMsg = PathMsg
        self.String = String

        rospy.init_node('pursuit_controller')

        # ROS Parameters
        self.config = ControllerConfig.from_params(rospy.get_param)
        self.watchdog = Watchdog(
            odom_timeout=rospy.get_param('~odom_stale_timeout', 0.5),
            costmap_timeout=rospy.get_param('~costmap_stale_timeout', 1.0),
            failure_timeout=rospy.get_param('~failure_timeout', 1.0),
            recovery_timeout=rospy.get_param('~recovery_timeout', 0.5)
        )

        # TF
        self.tf_buffer = tf2_ros.Buffer()
        self.tf_listener = tf2_ros.TransformListener(self.tf_buffer)
        self.transforms = TfTransformService(self.tf_buffer, rospy, tf2_ros, PoseStamped, tft)

        # Publishers
        self.cmd_pub = rospy.Publisher('~cmd_vel', TwistMsg, queue_size=1)
        self.global_plan_pub = rospy.Publisher('~received_global_plan', PathMsg, queue_size=1)
        self.local_plan_pub = rospy.Publisher('~local_plan', PathMsg, queue_size=1)
        self.state_pub = rospy.Publisher('~state', String, queue_size=1)

        # Controller
        self.controller = PurePursuitController()
        self.controller.configure(
            rospy.get_name(),
            self.transforms,
            config=self.config,
            plan_publisher=self.publish_local_plan,
            global_plan_publisher=self.publish_global_plan,
        )

        # State variables
        self.robot_pose: Optional[Pose] = None
        self.robot_speed = Twist()
        self.costmap_received = False

        # Thread safety
        self.data_lock = threading.Lock()
        self.last_log_time = 0.0

        # Subscribers
        rospy.Subscriber('~plan', PathMsg, self.plan_callback, queue_size=1)
        rospy.Subscriber('~odom', Odometry, self.odom_callback, queue_size=1)
        rospy.Subscriber('~costmap', OccupancyGridMsg, self.costmap_callback, queue_size=1)
        rospy.Subscriber('~e_stop', Bool, self.estop_callback, queue_size=1)

        self.controller.activate()

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------

    def plan_callback(self, msg) -> None:
        """전역 경로 콜백."""
        try:
            path = path_from_msg(msg)
            self.controller.set_plan(path)
            self.watchdog.on_new_plan()
            self.rospy.loginfo(
                f"Received plan with {len(path.poses)} poses in '{path.frame_id}'"
            )
        except Exception as e:
            self.rospy.logwarn_throttle(1.0, f"Plan callback error: {e}")

    def odom_callback(self, msg) -> None:
        """Odometry 콜백."""
        try:
            pose = pose_from_msg(msg.pose.pose, msg.header.frame_id, msg.header.stamp.to_sec())
            linear = msg.twist.twist.linear.x
            angular = msg.twist.twist.angular.z

            if not (isfinite(pose.x) and isfinite(pose.y) and isfinite(pose.yaw)):
                self.rospy.logwarn_throttle(1.0, "Odom NaN/Inf pose detected, ignored")
                return

            with self.data_lock:
                self.robot_pose = pose
                if isfinite(linear) and isfinite(angular):
                    self.robot_speed = Twist(linear=linear, angular=angular)
            self.watchdog.update_odom_time()
        except Exception as e:
            self.rospy.logwarn_throttle(1.0, f"Odom callback error: {e}")

    def costmap_callback(self, msg) -> None:
        """지역 점유 격자 콜백."""
        try:
            grid = occupancy_grid_from_msg(msg, self.config.lethal_cost)
            with self.data_lock:
                self.controller.set_costmap(grid)
                self.costmap_received = True
            self.watchdog.update_costmap_time()
        except Exception as e:
            self.rospy.logwarn_throttle(1.0, f"Costmap callback error: {e}")

    def estop_callback(self, msg) -> None:
        """비상 정지 콜백."""
        self.watchdog.set_estop(msg.data)
        if msg.data:
            self.rospy.logwarn("EMERGENCY STOP activated (latched - restart required)")

    # -------------------------------------------------------------------------
    # Publishing
    # -------------------------------------------------------------------------

    def path_to_msg(self, path: Path):
        msg = self.PathMsg()
        msg.header.frame_id = path.frame_id
        msg.header.stamp = self.rospy.Time.from_sec(path.stamp)
        for pose in path.poses:
            ps = self.PoseStamped()
            ps.header.frame_id = path.frame_id
            ps.header.stamp = msg.header.stamp
            ps.pose.position.x = pose.x
            ps.pose.position.y = pose.y
            q = self.tft.quaternion_from_euler(0.0, 0.0, pose.yaw)
            ps.pose.orientation.x = q[0]
            ps.pose.orientation.y = q[1]
            ps.pose.orientation.z = q[2]
            ps.pose.orientation.w = q[3]
            msg.poses.append(ps)
        return msg

    def publish_local_plan(self, path: Path) -> None:
        self.local_plan_pub.publish(self.path_to_msg(path))

    def publish_global_plan(self, path: Path) -> None:
        self.global_plan_pub.publish(self.path_to_msg(path))

    def publish_cmd(self, linear: float, angular: float):
        cmd = self.TwistMsg()
        cmd.linear.x = linear
        cmd.angular.z = angular
        self.cmd_pub.publish(cmd)
        return cmd

    def publish_stop(self):
        return self.publish_cmd(0.0, 0.0)

    def publish_state(self) -> None:
        state, stop_reason = self.watchdog.get_state()
        self.state_pub.publish(self.String(data=f"{state.name}:{stop_reason.name}"))

    # -------------------------------------------------------------------------
    # Control loop
    # -------------------------------------------------------------------------

    def control_step(self):
        """한 제어 주기 실행 후 발행한 명령 반환."""
        with self.data_lock:
            pose = self.robot_pose
            speed = self.robot_speed
            costmap_ready = self.costmap_received

        if pose is None or not costmap_ready:
            self.rospy.logwarn_throttle(5.0, "Waiting for odometry and costmap")
            return self.publish_stop()

        self.watchdog.check_watchdog()
        if not self.watchdog.allows_cycle():
            self.publish_state()
            return self.publish_stop()

        now_sec = self.rospy.Time.now().to_sec()
        result = self.controller.compute_velocity_commands(pose, speed, now=now_sec)
        self.watchdog.report_cycle(result.error)
        self.publish_state()

        if result.is_safety_abort:
            self.rospy.logerr(f"Safety abort: {result.error.name}, stopping")
            return self.publish_stop()
        if not result.ok:
            self.rospy.logwarn_throttle(1.0, f"Control cycle failed: {result.error.name}")
            return self.publish_stop()

        twist = result.cmd.twist
        return self.publish_cmd(twist.linear, twist.angular)

    def run(self) -> None:
        """메인 제어 루프."""
        rate = self.rospy.Rate(self.config.control_frequency)
        self.rospy.loginfo("=" * 50)
        self.rospy.loginfo("Pure Pursuit Controller")
        self.rospy.loginfo(
            f"desired_linear_vel={self.config.desired_linear_vel:.2f} m/s, "
            f"lookahead={self.config.lookahead_dist:.2f} m, "
            f"rate={self.config.control_frequency:.0f} Hz"
        )
        self.rospy.loginfo("=" * 50)

        while not self.rospy.is_shutdown():
            try:
                cmd = self.control_step()

                # Periodic logging
                now_sec = self.rospy.Time.now().to_sec()
                if now_sec - self.last_log_time >= 2.0:
                    self.last_log_time = now_sec
                    state, stop_reason = self.watchdog.get_state()
                    self.rospy.loginfo(
                        f"[{state.name}] v={cmd.linear.x:.2f} m/s w={cmd.angular.z:.2f} rad/s | "
                        f"plan: {len(self.controller.plan_store)} poses | {stop_reason.name}"
                    )
            except Exception as e:
                self.rospy.logerr(f"Main loop error: {e}")
                self.publish_stop()

            rate.sleep()

        self.controller.deactivate()
        self.controller.cleanup()


def main():
    import rospy

    try:
        node = PursuitControllerNode()
        node.run()
    except rospy.ROSInterruptException:
        pass


if __name__ == '__main__':
    main()
