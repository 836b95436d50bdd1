"""
Unit tests for quaternion helpers
"""

import math
import os
import sys

import numpy as np
import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from pose_store import quat as qm


IDENTITY = (0.0, 0.0, 0.0, 1.0)
YAW_90 = (0.0, 0.0, math.sqrt(0.5), math.sqrt(0.5))


class TestSlerp:
    """Spherical linear interpolation"""

    def test_endpoints(self):
        assert qm.slerp(IDENTITY, YAW_90, 0.0) == pytest.approx(IDENTITY)
        assert qm.slerp(IDENTITY, YAW_90, 1.0) == pytest.approx(YAW_90)

    def test_midpoint_is_half_rotation(self):
        q = qm.slerp(IDENTITY, YAW_90, 0.5)
        expected = (0.0, 0.0, math.sin(math.pi / 8), math.cos(math.pi / 8))
        assert q == pytest.approx(expected, abs=1e-9)

    @pytest.mark.parametrize("u", [0.0, 0.1, 0.33, 0.5, 0.8, 1.0])
    def test_double_cover(self, u):
        a = qm.normalize((0.1, -0.3, 0.5, 0.8))
        b = qm.normalize((-0.6, 0.2, 0.1, 0.7))
        q1 = qm.slerp(a, b, u)
        q2 = qm.slerp(a, -b, u)
        assert qm.same_rotation(q1, q2)

    @pytest.mark.parametrize("u", [0.05, 0.25, 0.5, 0.75, 0.95])
    def test_unit_norm(self, u):
        a = qm.normalize((0.3, 0.1, -0.2, 0.9))
        b = qm.normalize((-0.1, 0.7, 0.4, 0.2))
        assert qm.norm(qm.slerp(a, b, u)) == pytest.approx(1.0, abs=1e-6)

    def test_near_parallel_uses_linear_blend(self):
        a = qm.normalize((0.0, 0.0, 0.0, 1.0))
        b = qm.normalize((0.0, 0.0, 1e-4, 1.0))
        q = qm.slerp(a, b, 0.5)
        assert qm.norm(q) == pytest.approx(1.0, abs=1e-12)
        assert q[2] == pytest.approx(0.5e-4, rel=1e-3)

    def test_shortest_arc(self):
        # -YAW_90 is the same rotation; the blend must not swing the long way round.
        neg = tuple(-v for v in YAW_90)
        q = qm.slerp(IDENTITY, neg, 0.5)
        yaw, _, _ = qm.to_ypr_deg(q)
        assert yaw == pytest.approx(45.0, abs=1e-6)


class TestHelpers:
    """normalize / norm / Euler conversion"""

    def test_normalize(self):
        q = qm.normalize((0.0, 0.0, 3.0, 4.0))
        assert q == pytest.approx((0.0, 0.0, 0.6, 0.8))

    def test_normalize_zero_is_passthrough(self):
        q = qm.normalize((0.0, 0.0, 0.0, 0.0))
        assert np.all(q == 0.0)

    def test_ypr_identity(self):
        assert qm.to_ypr_deg(IDENTITY) == pytest.approx((0.0, 0.0, 0.0))

    def test_ypr_yaw_90(self):
        yaw, pitch, roll = qm.to_ypr_deg(YAW_90)
        assert yaw == pytest.approx(90.0)
        assert pitch == pytest.approx(0.0, abs=1e-9)
        assert roll == pytest.approx(0.0, abs=1e-9)

    def test_ypr_pitch_clamped(self):
        h = math.sqrt(0.5)
        _, pitch, _ = qm.to_ypr_deg((0.0, h * 1.0000001, 0.0, h * 1.0000001))
        assert pitch == pytest.approx(90.0)
