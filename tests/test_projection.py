import math

import numpy as np
import pytest

from wrench.projection import (
    FAR_PLANE,
    NEAR_PLANE,
    colour_coded_submodel_index,
    create_ray,
    encode_pick_colour,
    local_to_clip,
    local_to_screen,
    perspective,
    rotate,
    translate,
    world_to_clip,
)


def _ndc(matrix, point):
    clip = matrix @ np.append(np.asarray(point, dtype=float), 1.0)
    return clip[:3] / clip[3]


def test_perspective_maps_near_and_far_planes_to_depth_bounds():
    proj = perspective(math.radians(45.0), 16 / 9, 0.5, 100.0)
    assert _ndc(proj, (0.0, 0.0, -0.5))[2] == pytest.approx(-1.0)
    assert _ndc(proj, (0.0, 0.0, -100.0))[2] == pytest.approx(1.0)
    assert proj[3, 2] == -1.0


def test_perspective_rejects_equal_planes():
    with pytest.raises(ValueError):
        perspective(1.0, 1.0, 5.0, 5.0)


def test_translate_moves_points():
    m = translate((3.0, -2.0, 7.5))
    moved = m @ np.array([1.0, 1.0, 1.0, 1.0])
    assert np.allclose(moved, [4.0, -1.0, 8.5, 1.0])
    assert np.allclose(translate((0, 0, 0)), np.identity(4))


def test_rotate_is_proper_rotation_and_fixes_axis():
    axis = (1.0, 2.0, -0.5)
    r = rotate(0.7, axis)
    assert np.allclose(r[:3, :3] @ r[:3, :3].T, np.identity(3))
    assert np.linalg.det(r[:3, :3]) == pytest.approx(1.0)
    assert np.allclose(r[:3, :3] @ np.array(axis), axis)
    assert np.allclose(r @ rotate(-0.7, axis), np.identity(4))


def test_rotate_rejects_zero_axis():
    with pytest.raises(ValueError):
        rotate(1.0, (0.0, 0.0, 0.0))


def test_world_to_clip_puts_camera_at_zero_w():
    cam = (10.0, -4.0, 2.0)
    m = world_to_clip(cam, (0.3, -1.1), (800.0, 600.0))
    clip = m @ np.append(cam, 1.0)
    assert clip[3] == pytest.approx(0.0)


def test_world_to_clip_rejects_zero_height():
    with pytest.raises(ValueError):
        world_to_clip((0, 0, 0), (0, 0), (800.0, 0.0))


def test_world_to_clip_depth_range_along_view_direction():
    m = world_to_clip((0.0, 0.0, 0.0), (0.0, 0.0), (640.0, 480.0))
    near_point = _ndc(m, (-NEAR_PLANE, 0.0, 0.0))
    far_point = _ndc(m, (-FAR_PLANE, 0.0, 0.0))
    assert near_point[2] == pytest.approx(-1.0)
    assert far_point[2] == pytest.approx(1.0, abs=1e-6)


def test_local_to_clip_without_rotation_is_translation():
    w2c = world_to_clip((1.0, 2.0, 3.0), (0.2, 0.4), (100.0, 50.0))
    position = (5.0, -6.0, 7.0)
    result = local_to_clip(w2c, position, (0.0, 0.0, 0.0))
    assert np.allclose(result, w2c @ translate(position))


def test_local_to_clip_applies_rotation_order():
    w2c = np.identity(4)
    rotation = (0.1, 0.2, 0.3)
    result = local_to_clip(w2c, (0.0, 0.0, 0.0), rotation)
    expected = rotate(0.1, (1, 0, 0)) @ rotate(0.2, (0, 1, 0)) @ rotate(0.3, (0, 0, 1))
    assert np.allclose(result, expected)


def test_local_to_screen_centre_of_viewport():
    # The source offsets the projected point by (1, 1, 1) before projecting.
    local_to_world = translate((-1.0, -1.0, 0.25))
    screen = local_to_screen(np.identity(4), local_to_world, (30.0, 40.0), (200.0, 100.0))
    assert np.allclose(screen, [30.0 + 100.0, 40.0 + 50.0, 1.25])


def test_create_ray_points_towards_projected_point():
    viewport_pos = np.array([10.0, 20.0])
    viewport_size = np.array([640.0, 480.0])
    m = world_to_clip((0.0, 0.0, 0.0), (0.1, -0.2), viewport_size)
    point = np.array([-10.0, 1.0, 2.0])
    ndc = _ndc(m, point)
    screen = viewport_pos + (ndc[:2] + 1.0) * viewport_size / 2.0
    ray = create_ray(m, screen, viewport_pos, viewport_size)
    assert np.linalg.norm(ray) == pytest.approx(1.0)
    assert np.allclose(ray, point / np.linalg.norm(point), atol=1e-6)


def test_colour_coded_submodel_index_first_is_red():
    assert np.allclose(colour_coded_submodel_index(0, 4), [1.0, 0.0, 0.0, 1.0])


def test_colour_coded_submodel_index_invariants():
    colours = [colour_coded_submodel_index(i, 5) for i in range(5)]
    for colour in colours:
        assert colour[3] == 1.0
        assert max(colour[:3]) == pytest.approx(1.0)
        assert min(colour[:3]) == pytest.approx(0.0)
    assert len({tuple(np.round(c, 6)) for c in colours}) == 5
    assert np.allclose(colour_coded_submodel_index(5, 5), colours[0])


def test_colour_coded_submodel_index_rejects_zero_count():
    with pytest.raises(ValueError):
        colour_coded_submodel_index(0, 0)


def test_encode_pick_colour_top_byte_is_alpha():
    assert np.allclose(encode_pick_colour(0xFF000000), [0.0, 0.0, 0.0, 1.0])


@pytest.mark.parametrize("entity_id", [0, 1, 0x1234, 0xABCDEF, 0x89ABCDEF, 0xFFFFFFFF])
def test_encode_pick_colour_round_trip(entity_id):
    colour = encode_pick_colour(entity_id)
    assert all(0.0 <= c <= 1.0 for c in colour)
    decoded = sum(int(round(c * 255)) << (8 * i) for i, c in enumerate(colour))
    assert decoded == entity_id