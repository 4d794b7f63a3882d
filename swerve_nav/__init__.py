"""
Swerve Drive Navigation Core.

Kinematics, odometry and vision-fused pose estimation for a robot
with four independently steered wheel modules.
"""

__version__ = "0.1.0"
