"""Free-flying editor camera driven by mouse movement and held keys."""

from __future__ import annotations

import enum
import math
from collections.abc import Collection, Sequence
from dataclasses import dataclass, field

import numpy as np

from wrench import projection

# Key codes as reported by the windowing layer.
KEY_SPACE = 32
KEY_A = 65
KEY_D = 68
KEY_S = 83
KEY_W = 87
KEY_Z = 90
KEY_LEFT_SHIFT = 340

ROTATION_SPEED = 0.0005
MOVEMENT_SPEED = 0.0001
MOVEMENT_DISTANCE = 2.0

MIN_PITCH = math.radians(-89.0)
MAX_PITCH = math.radians(89.0)
MIN_YAW = math.radians(-180.0)
MAX_YAW = math.radians(180.0)


class ViewMode(enum.Enum):
    """How models are drawn in the 3D view."""

    WIREFRAME = 0
    TEXTURED_POLYGONS = 1


def constrain(value: float, minimum: float, maximum: float, should_flip: bool) -> float:
    """Keep ``value`` within bounds, clamping it or wrapping to the opposite bound."""
    if value < minimum:
        value = maximum if should_flip else minimum
    if value > maximum:
        value = minimum if should_flip else maximum
    return value


def _zero(length: int) -> np.ndarray:
    return np.zeros(length)


@dataclass
class Camera:
    """Camera state: position, (pitch, yaw) rotation and whether it has control."""

    control: bool = False
    position: np.ndarray = field(default_factory=lambda: _zero(3))
    rotation: np.ndarray = field(default_factory=lambda: _zero(2))
    mode: ViewMode = ViewMode.TEXTURED_POLYGONS

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=float).reshape(3).copy()
        self.rotation = np.asarray(self.rotation, dtype=float).reshape(2).copy()

    @property
    def pitch(self) -> float:
        return float(self.rotation[0])

    @property
    def yaw(self) -> float:
        return float(self.rotation[1])

    def toggle_control(self) -> bool:
        """Switch camera control on or off and return the new state.

        While control is on the caller should hide and capture the cursor.
        """
        self.control = not self.control
        return self.control

    def rotate(self, mouse_diff: Sequence[float]) -> None:
        """Turn the camera by a mouse movement, if the camera has control."""
        if not self.control:
            return
        dx, dy = (float(v) for v in mouse_diff)
        yaw = self.rotation[1] + dx * ROTATION_SPEED
        pitch = self.rotation[0] - dy * ROTATION_SPEED
        self.rotation[1] = constrain(yaw, MIN_YAW, MAX_YAW, True)
        self.rotation[0] = constrain(pitch, MIN_PITCH, MAX_PITCH, False)

    def move(self, keys_down: Collection[int], delta_time: float) -> None:
        """Fly according to the held keys over ``delta_time`` microseconds."""
        if not self.control:
            return
        dist = MOVEMENT_DISTANCE
        dx = math.sin(self.rotation[1]) * dist
        dz = math.cos(self.rotation[1]) * dist
        step = delta_time * MOVEMENT_SPEED
        movement = np.zeros(3)
        if KEY_W in keys_down:
            movement[0] -= dz * step
            movement[1] += dx * step
        if KEY_S in keys_down:
            movement[0] += dz * step
            movement[1] -= dx * step
        if KEY_A in keys_down:
            movement[0] -= dx * step
            movement[1] -= dz * step
        if KEY_D in keys_down:
            movement[0] += dx * step
            movement[1] += dz * step
        if KEY_SPACE in keys_down:
            movement[2] += dist * step
        if KEY_LEFT_SHIFT in keys_down:
            movement[2] -= dist * step
        self.position += movement

    def world_to_clip(self, viewport_size: Sequence[float]) -> np.ndarray:
        """Return the world-to-clip matrix for this camera and viewport."""
        return projection.world_to_clip(self.position, self.rotation, viewport_size)

    def reset(self, position: Sequence[float] | None = None) -> None:
        """Zero the rotation and move to ``position`` (the origin if omitted)."""
        self.rotation = _zero(2)
        if position is None:
            self.position = _zero(3)
        else:
            self.position = np.asarray(position, dtype=float).reshape(3).copy()