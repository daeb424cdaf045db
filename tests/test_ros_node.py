import math
import os
import sys
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from pursuit_controller.drivers.ros_node import (
    PursuitControllerNode,
    TfTransformService,
    occupancy_grid_from_msg,
    path_from_msg,
    pose_from_msg,
)
from pursuit_controller.errors import TransformError
from pursuit_controller.transforms import StaticTransformBuffer
from pursuit_controller.types import Pose, Twist, TwistStamped
from pursuit_controller.utils.watchdog import DriveState, StopReason


# =============================================================================
# Fake ROS messages
# =============================================================================

def stamp(sec):
    return SimpleNamespace(to_sec=lambda: sec)


def header(frame_id, sec):
    return SimpleNamespace(frame_id=frame_id, stamp=stamp(sec))


def pose_msg(x, y, yaw=0.0):
    return SimpleNamespace(
        position=SimpleNamespace(x=x, y=y, z=0.0),
        orientation=SimpleNamespace(x=0.0, y=0.0, z=math.sin(yaw / 2), w=math.cos(yaw / 2)),
    )


def path_msg(points, frame_id='map', sec=5.0):
    poses = [SimpleNamespace(header=header('', 0.0), pose=pose_msg(x, y)) for x, y in points]
    return SimpleNamespace(header=header(frame_id, sec), poses=poses)


def odom_msg(x, y, yaw=0.0, v=0.0, w=0.0, frame_id='map', sec=10.0):
    return SimpleNamespace(
        header=header(frame_id, sec),
        pose=SimpleNamespace(pose=pose_msg(x, y, yaw)),
        twist=SimpleNamespace(twist=SimpleNamespace(
            linear=SimpleNamespace(x=v), angular=SimpleNamespace(z=w))),
    )


def grid_msg(width=80, height=80, resolution=0.05, origin=-2.0, frame_id='map', data=None):
    info = SimpleNamespace(
        width=width, height=height, resolution=resolution,
        origin=SimpleNamespace(position=SimpleNamespace(x=origin, y=origin)),
    )
    return SimpleNamespace(header=header(frame_id, 10.0), info=info,
                           data=data if data is not None else [0] * (width * height))


class TestMessageConversion(unittest.TestCase):

    def test_pose_from_msg_extracts_yaw(self):
        pose = pose_from_msg(pose_msg(1.0, 2.0, math.pi / 3), 'odom', 3.0)
        self.assertEqual((pose.x, pose.y), (1.0, 2.0))
        self.assertAlmostEqual(pose.yaw, math.pi / 3)
        self.assertEqual(pose.frame_id, 'odom')
        self.assertEqual(pose.stamp, 3.0)

    def test_path_from_msg_inherits_header(self):
        path = path_from_msg(path_msg([(0, 0), (1, 0)]))
        self.assertEqual(path.frame_id, 'map')
        self.assertEqual(len(path.poses), 2)
        self.assertEqual(path.poses[1].frame_id, 'map')
        self.assertEqual(path.poses[1].stamp, 5.0)

    def test_occupancy_grid_from_msg(self):
        data = [0] * 12
        data[1 * 4 + 2] = 100
        grid = occupancy_grid_from_msg(grid_msg(width=4, height=3, resolution=0.5,
                                                origin=0.0, data=data))
        self.assertEqual(grid.size_in_cells_x, 4)
        self.assertEqual(grid.size_in_cells_y, 3)
        self.assertTrue(grid.is_lethal(2, 1))
        self.assertFalse(grid.is_lethal(1, 2))


class TestPursuitControllerNode(unittest.TestCase):
    """Node wiring with a mocked ROS environment."""

    def setUp(self):
        rospy = MagicMock()
        rospy.get_param.side_effect = lambda key, default=None: default
        rospy.get_name.return_value = '/pursuit_controller'
        rospy.Publisher.side_effect = lambda *args, **kwargs: MagicMock()
        rospy.Time.now.return_value.to_sec.return_value = 100.0

        tft = MagicMock()
        tft.quaternion_from_euler.return_value = (0.0, 0.0, 0.0, 1.0)
        tf = MagicMock()
        tf.transformations = tft

        geometry_msgs = MagicMock()
        nav_msgs = MagicMock()
        std_msgs = MagicMock()
        modules = {
            'rospy': rospy,
            'tf2_ros': MagicMock(),
            'tf2_geometry_msgs': MagicMock(),
            'tf': tf,
            'tf.transformations': tft,
            'geometry_msgs': geometry_msgs,
            'geometry_msgs.msg': geometry_msgs.msg,
            'nav_msgs': nav_msgs,
            'nav_msgs.msg': nav_msgs.msg,
            'std_msgs': std_msgs,
            'std_msgs.msg': std_msgs.msg,
        }
        patcher = patch.dict(sys.modules, modules)
        patcher.start()
        self.addCleanup(patcher.stop)

        self.rospy = rospy
        self.node = PursuitControllerNode()

        # Replace tf2 with an in-memory tree: robot at (1.02, 0) in map
        self.tf = StaticTransformBuffer()
        self.tf.set_transform('map', 'base_link', 1.02, 0.0, 0.0)
        self.node.controller.transforms = self.tf

    def set_time(self, sec):
        self.rospy.Time.now.return_value.to_sec.return_value = sec

    def last_cmd(self):
        return self.node.cmd_pub.publish.call_args[0][0]

    def feed(self):
        self.node.odom_callback(odom_msg(1.02, 0.0, v=0.2))
        self.node.costmap_callback(grid_msg())

    def test_parameters_use_defaults(self):
        self.assertEqual(self.node.config.desired_linear_vel, 0.5)
        self.assertTrue(self.node.controller.active)

    def test_stops_while_waiting_for_inputs(self):
        cmd = self.node.control_step()
        self.assertEqual(cmd.linear.x, 0.0)
        self.assertEqual(cmd.angular.z, 0.0)
        self.node.cmd_pub.publish.assert_called_once()

    def test_follows_plan(self):
        self.feed()
        self.node.plan_callback(path_msg([(i * 0.1, 0.0) for i in range(51)]))

        self.node.control_step()

        cmd = self.last_cmd()
        self.assertAlmostEqual(cmd.linear.x, 0.5)
        self.assertAlmostEqual(cmd.angular.z, 0.0)
        self.node.local_plan_pub.publish.assert_called_once()
        self.node.global_plan_pub.publish.assert_called_once()
        self.assertEqual(self.node.watchdog.get_state(), (DriveState.TRACKING, StopReason.NONE))

    def test_missing_plan_publishes_stop(self):
        self.feed()
        self.node.control_step()
        cmd = self.last_cmd()
        self.assertEqual(cmd.linear.x, 0.0)
        self.assertEqual(self.node.watchdog.state, DriveState.DEGRADED)

    def test_collision_triggers_emergency_stop(self):
        data = [0] * (80 * 80)
        # obstacle cell at x=1.3 m, y=0 m
        data[40 * 80 + 66] = 100
        data[40 * 80 + 65] = 100
        self.node.odom_callback(odom_msg(1.02, 0.0))
        self.node.costmap_callback(grid_msg(data=data))
        self.node.plan_callback(path_msg([(i * 0.1, 0.0) for i in range(51)]))

        self.node.control_step()

        self.assertEqual(self.last_cmd().linear.x, 0.0)
        self.assertEqual(self.node.watchdog.get_stop_reason(), StopReason.COLLISION_IMMINENT)
        self.rospy.logerr.assert_called()

    def test_estop_blocks_commands(self):
        self.feed()
        self.node.plan_callback(path_msg([(i * 0.1, 0.0) for i in range(51)]))
        self.node.estop_callback(SimpleNamespace(data=True))

        self.node.control_step()

        self.assertEqual(self.last_cmd().linear.x, 0.0)
        self.assertEqual(self.node.watchdog.get_stop_reason(), StopReason.EMERGENCY_STOP)

    def test_invalid_odom_is_ignored(self):
        self.node.odom_callback(odom_msg(float('nan'), 0.0))
        self.assertIsNone(self.node.robot_pose)

    def test_late_plan_recovers_from_no_plan_stop(self):
        self.feed()
        self.node.control_step()
        self.set_time(101.5)
        self.feed()
        self.node.control_step()
        self.assertEqual(self.node.watchdog.get_state(),
                         (DriveState.STOPPING, StopReason.NO_PLAN))

        self.node.plan_callback(path_msg([(i * 0.1, 0.0) for i in range(51)]))
        self.set_time(101.55)
        self.feed()
        self.node.control_step()

        self.assertEqual(self.node.watchdog.get_state(), (DriveState.TRACKING, StopReason.NONE))
        self.assertAlmostEqual(self.last_cmd().linear.x, 0.5)

    def test_recovers_after_transform_outage(self):
        self.node.plan_callback(path_msg([(i * 0.1, 0.0) for i in range(51)]))
        self.node.costmap_callback(grid_msg())
        self.node.odom_callback(odom_msg(1.02, 0.0, frame_id='odom'))
        self.node.control_step()
        self.set_time(101.5)
        self.node.costmap_callback(grid_msg())
        self.node.odom_callback(odom_msg(1.02, 0.0, frame_id='odom'))
        self.node.control_step()
        self.assertEqual(self.node.watchdog.get_state(),
                         (DriveState.STOPPING, StopReason.TRANSFORM_FAILED))
        self.assertEqual(self.last_cmd().linear.x, 0.0)

        # odom frame becomes available again, no new plan needed
        self.tf.set_transform('map', 'odom', 0.0, 0.0, 0.0)
        self.set_time(101.55)
        self.node.costmap_callback(grid_msg())
        self.node.odom_callback(odom_msg(1.02, 0.0, frame_id='odom'))
        self.node.control_step()

        self.assertEqual(self.node.watchdog.get_state(), (DriveState.TRACKING, StopReason.NONE))
        self.assertAlmostEqual(self.last_cmd().linear.x, 0.5)

    def test_acceleration_limited_when_odom_is_slower_than_loop(self):
        self.feed()
        self.node.plan_callback(path_msg([(i * 0.1, 0.0) for i in range(51)]))
        self.node.controller.state.last_cmd = TwistStamped(Twist(0.0, 0.0), 'map', 99.95)

        # Same odometry stamp on both cycles, only the host clock advances
        self.node.control_step()
        self.assertAlmostEqual(self.last_cmd().linear.x, 0.05)
        self.set_time(100.05)
        self.node.control_step()
        self.assertAlmostEqual(self.last_cmd().linear.x, 0.10)
        self.assertEqual(self.node.controller.state.last_cmd.stamp, 100.05)


class TestTfTransformService(unittest.TestCase):
    """tf2 failures are reported through TransformError."""

    class TransformException(Exception):
        pass

    class InvalidArgumentException(TransformException):
        pass

    class TimeoutException(TransformException):
        pass

    def setUp(self):
        tf2_ros = SimpleNamespace(TransformException=self.TransformException)
        tft = MagicMock()
        tft.quaternion_from_euler.return_value = (0.0, 0.0, 0.0, 1.0)
        self.buffer = MagicMock()
        self.service = TfTransformService(self.buffer, MagicMock(), tf2_ros, MagicMock, tft)

    def test_invalid_frame_raises_transform_error(self):
        self.buffer.transform.side_effect = self.InvalidArgumentException("empty frame id")
        with self.assertRaises(TransformError):
            self.service.transform(Pose(x=1.0, frame_id=''), 'base_link', 0.1)

    def test_timeout_raises_transform_error(self):
        self.buffer.transform.side_effect = self.TimeoutException("timed out")
        with self.assertRaises(TransformError):
            self.service.transform(Pose(x=1.0, frame_id='map'), 'base_link', 0.1)

    def test_successful_transform(self):
        self.buffer.transform.return_value = SimpleNamespace(pose=pose_msg(0.5, -0.2))
        out = self.service.transform(Pose(x=1.0, frame_id='map', stamp=2.0), 'base_link', 0.1)
        self.assertEqual((out.x, out.y), (0.5, -0.2))
        self.assertEqual(out.frame_id, 'base_link')
        self.assertEqual(out.stamp, 2.0)


if __name__ == '__main__':
    unittest.main()
