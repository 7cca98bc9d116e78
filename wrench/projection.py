"""Camera and projection maths for the 3D view.

Matrices are 4x4 numpy arrays acting on column vectors (``m @ v``), so the
translation of an affine matrix lives in ``m[:3, 3]``.
"""

from __future__ import annotations

import colorsys
import math
from collections.abc import Sequence

import numpy as np

FIELD_OF_VIEW = math.radians(45.0)
NEAR_PLANE = 0.1
FAR_PLANE = 10000.0

# Maps game coordinates (z up) onto the camera's axes: (x, y, z) -> (y, -z, x).
_YZX = np.array(
    [
        [0.0, 1.0, 0.0, 0.0],
        [0.0, 0.0, -1.0, 0.0],
        [1.0, 0.0, 0.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ]
)

_X_AXIS = (1.0, 0.0, 0.0)
_Y_AXIS = (0.0, 1.0, 0.0)
_Z_AXIS = (0.0, 0.0, 1.0)


def _vec(values: Sequence[float], length: int) -> np.ndarray:
    array = np.asarray(values, dtype=float).reshape(-1)
    if array.shape != (length,):
        raise ValueError(f"expected {length} components, got {array.size}")
    return array


def _mat(values: Sequence[Sequence[float]] | np.ndarray) -> np.ndarray:
    array = np.asarray(values, dtype=float)
    if array.shape != (4, 4):
        raise ValueError("expected a 4x4 matrix")
    return array


def perspective(fovy: float, aspect: float, near: float, far: float) -> np.ndarray:
    """Return a right-handed perspective projection with clip depth in [-1, 1]."""
    if aspect == 0:
        raise ValueError("aspect ratio must not be zero")
    if far == near:
        raise ValueError("near and far planes must differ")
    tan_half = math.tan(fovy / 2.0)
    result = np.zeros((4, 4))
    result[0, 0] = 1.0 / (aspect * tan_half)
    result[1, 1] = 1.0 / tan_half
    result[2, 2] = -(far + near) / (far - near)
    result[2, 3] = -(2.0 * far * near) / (far - near)
    result[3, 2] = -1.0
    return result


def translate(position: Sequence[float]) -> np.ndarray:
    """Return a matrix translating by ``position``."""
    result = np.identity(4)
    result[:3, 3] = _vec(position, 3)
    return result


def rotate(angle: float, axis: Sequence[float]) -> np.ndarray:
    """Return a matrix rotating by ``angle`` radians about ``axis``."""
    direction = _vec(axis, 3)
    length = np.linalg.norm(direction)
    if length == 0:
        raise ValueError("rotation axis must not be zero")
    x, y, z = direction / length
    c = math.cos(angle)
    s = math.sin(angle)
    t = 1.0 - c
    result = np.identity(4)
    result[:3, :3] = [
        [c + t * x * x, t * x * y - s * z, t * x * z + s * y],
        [t * x * y + s * z, c + t * y * y, t * y * z - s * x],
        [t * x * z - s * y, t * y * z + s * x, c + t * z * z],
    ]
    return result


def world_to_clip(
    camera_position: Sequence[float],
    camera_rotation: Sequence[float],
    viewport_size: Sequence[float],
) -> np.ndarray:
    """Return the world-to-clip matrix for a camera.

    ``camera_rotation`` is (pitch, yaw) in radians.
    """
    width, height = _vec(viewport_size, 2)
    if height == 0:
        raise ValueError("viewport height must not be zero")
    projection = perspective(FIELD_OF_VIEW, width / height, NEAR_PLANE, FAR_PLANE)
    pitch_angle, yaw_angle = _vec(camera_rotation, 2)
    pitch = rotate(pitch_angle, _X_AXIS)
    yaw = rotate(yaw_angle, _Y_AXIS)
    view = pitch @ yaw @ _YZX @ translate(-_vec(camera_position, 3))
    return projection @ view


def local_to_clip(
    world_to_clip: Sequence[Sequence[float]] | np.ndarray,
    position: Sequence[float],
    rotation: Sequence[float],
) -> np.ndarray:
    """Return the local-to-clip matrix of an object placed by position and Euler angles."""
    rx, ry, rz = _vec(rotation, 3)
    model = (
        translate(position)
        @ rotate(rx, _X_AXIS)
        @ rotate(ry, _Y_AXIS)
        @ rotate(rz, _Z_AXIS)
    )
    return _mat(world_to_clip) @ model


def local_to_screen(
    world_to_clip: Sequence[Sequence[float]] | np.ndarray,
    local_to_world: Sequence[Sequence[float]] | np.ndarray,
    window_pos: Sequence[float],
    viewport_size: Sequence[float],
) -> np.ndarray:
    """Project an object's origin to (screen x, screen y, clip depth)."""
    to_clip = local_to_clip(world_to_clip, (1.0, 1.0, 1.0), (0.0, 0.0, 0.0))
    origin = np.append(_mat(local_to_world)[:3, 3], 1.0)
    homogeneous = to_clip @ origin
    gl_x = homogeneous[0] / homogeneous[3]
    gl_y = homogeneous[1] / homogeneous[3]
    window_x, window_y = _vec(window_pos, 2)
    width, height = _vec(viewport_size, 2)
    return np.array(
        [
            window_x + (1.0 + gl_x) * width / 2.0,
            window_y + (1.0 + gl_y) * height / 2.0,
            homogeneous[2],
        ]
    )


def create_ray(
    world_to_clip: Sequence[Sequence[float]] | np.ndarray,
    screen_pos: Sequence[float],
    viewport_pos: Sequence[float],
    viewport_size: Sequence[float],
) -> np.ndarray:
    """Return the unit world-space direction through a point of the viewport."""
    relative = _vec(screen_pos, 2) - _vec(viewport_pos, 2)
    size = _vec(viewport_size, 2)
    if np.any(size == 0):
        raise ValueError("viewport size must not be zero")
    device = 2.0 * relative / size - 1.0
    clip_pos = np.array([device[0], device[1], 1.0, 1.0])
    world_pos = np.linalg.inv(_mat(world_to_clip)) @ clip_pos
    direction = world_pos[:3]
    length = np.linalg.norm(direction)
    if length == 0:
        raise ValueError("ray direction is degenerate")
    return direction / length


def colour_coded_submodel_index(index: int, submodel_count: int) -> np.ndarray:
    """Return an RGBA colour whose hue spreads submodels around the colour wheel."""
    if submodel_count == 0:
        raise ValueError("submodel count must not be zero")
    hue = math.fmod(index / float(submodel_count), 1.0)
    r, g, b = colorsys.hsv_to_rgb(hue, 1.0, 1.0)
    return np.array([r, g, b, 1.0])


def encode_pick_colour(entity_id: int) -> np.ndarray:
    """Encode a 32-bit entity id as an RGBA colour, one byte per channel."""
    return np.array(
        [((entity_id >> shift) & 0xFF) / 255.0 for shift in (0, 8, 16, 24)]
    )