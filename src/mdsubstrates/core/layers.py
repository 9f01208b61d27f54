"""
Layer construction.

A layer is placed in space by a composed pipeline of transform stages, each
a function from an (n, 3) position array to a new one. The builder always
applies them in the order rotate, scale, offset.
"""

import logging
import math
from typing import Callable, Sequence, Union

import numpy as np

from mdsubstrates.models import Lattice, Layer


logger = logging.getLogger(__name__)

Transform = Callable[[np.ndarray], np.ndarray]


def rotate_about_centroid(angle: float) -> Transform:
    """In-plane counter-clockwise rotation about the centroid of the points."""
    def stage(positions: np.ndarray) -> np.ndarray:
        if angle == 0.0 or len(positions) == 0:
            return positions.copy()

        center = positions[:, :2].mean(axis=0)
        c, s = math.cos(angle), math.sin(angle)
        rotation = np.array([[c, -s], [s, c]])

        rotated = positions.copy()
        rotated[:, :2] = (positions[:, :2] - center) @ rotation.T + center
        return rotated

    return stage


def scale_about_centroid(factor: float) -> Transform:
    """Uniform in-plane scaling about the centroid of the points."""
    if factor <= 0.0:
        raise ValueError(f"Scale factor must be positive, got {factor}")

    def stage(positions: np.ndarray) -> np.ndarray:
        if factor == 1.0 or len(positions) == 0:
            return positions.copy()

        center = positions[:, :2].mean(axis=0)
        scaled = positions.copy()
        scaled[:, :2] = (positions[:, :2] - center) * factor + center
        return scaled

    return stage


def translate(shift: Sequence[float]) -> Transform:
    shift = np.asarray(shift, dtype=float)

    def stage(positions: np.ndarray) -> np.ndarray:
        return positions + shift

    return stage


def compose(*stages: Transform) -> Transform:
    """Chain transform stages, applied left to right."""
    def pipeline(positions: np.ndarray) -> np.ndarray:
        for stage in stages:
            positions = stage(positions)
        return positions

    return pipeline


def _placed_origin(source, scale, shift) -> tuple[float, float]:
    """Lower corner of the lattice box after scaling about the centroid and shifting."""
    x0, y0 = source.box_origin
    if scale != 1.0 and len(source.positions):
        cx, cy = source.positions[:, :2].mean(axis=0)
        x0 = (x0 - cx) * scale + cx
        y0 = (y0 - cy) * scale + cy
    return float(x0 + shift[0]), float(y0 + shift[1])


def build_layer(
    source: Union[Lattice, Layer],
    z_offset: float = 0.0,
    rotation: float = 0.0,
    scale: float = 1.0,
    shift: tuple[float, float] = (0.0, 0.0),
) -> Layer:
    """
    Place a replicated point set as one layer.

    Args:
        source: Replicated lattice (or an existing layer) to place
        z_offset: Height added to every point
        rotation: Counter-clockwise rotation in radians about the centroid
        scale: Uniform in-plane scale factor about the centroid
        shift: In-plane translation (x, y) applied with the z offset

    Returns:
        New Layer; the source is left untouched
    """
    pipeline = compose(
        rotate_about_centroid(rotation),
        scale_about_centroid(scale),
        translate((shift[0], shift[1], z_offset)),
    )
    positions = pipeline(source.positions)
    box_origin = _placed_origin(source, scale, shift)

    logger.debug(
        "Built layer of %d atoms at z=%.4f (rotation %.4f rad, scale %.4f)",
        len(positions), z_offset, rotation, scale,
    )

    return Layer(
        positions=positions,
        names=source.names,
        elements=source.elements,
        cells=source.cells,
        box_size=(source.box_size[0] * scale, source.box_size[1] * scale),
        rotation=rotation,
        z_offset=z_offset,
        scale=scale,
        shift=(float(shift[0]), float(shift[1])),
        box_origin=box_origin,
    )
