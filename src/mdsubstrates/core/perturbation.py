"""
Seeded perturbation of layers: random defects and roughness.

All randomness comes from an explicit RandomState, a single linear stream of
uniform draws. Every atom of a layer consumes the same fixed block of draws,
in emission order:

    [defect draw] [one draw per jitter axis]

The defect draw is present when defect_fraction > 0 and the axis draws when
jitter > 0. A removed atom still consumes its jitter draws, which are then
discarded, so the stream position after a layer depends only on the number
of atoms and the spec. A disabled stage consumes nothing.
"""

import logging
from typing import Optional

import numpy as np
from scipy.special import ndtri

from mdsubstrates.models import JitterDistribution, Layer, PerturbationSpec


logger = logging.getLogger(__name__)

AXES = "xyz"

# Normal jitter uses sigma = jitter / NORMAL_SIGMAS, clipped at +-jitter
NORMAL_SIGMAS = 3.0


class RandomState:
    """
    Seeded stream of uniform draws in [0, 1).

    Two states built from the same seed yield bit-identical sequences on any
    machine (numpy PCG64).
    """

    def __init__(self, seed: Optional[int] = None):
        if seed is None:
            seed = int(np.random.SeedSequence().entropy % (2**63))
        self.seed = seed
        self.n_drawn = 0
        self._generator = np.random.Generator(np.random.PCG64(seed))

    @classmethod
    def from_spec(cls, spec: PerturbationSpec) -> "RandomState":
        return cls(spec.seed)

    def draw(self, n: int) -> np.ndarray:
        """Consume and return the next `n` uniforms of the stream."""
        if n <= 0:
            return np.empty(0)
        self.n_drawn += n
        return self._generator.random(n)

    def __repr__(self) -> str:
        return f"RandomState(seed={self.seed}, n_drawn={self.n_drawn})"


def validate_spec(spec: PerturbationSpec) -> None:
    """Raise ValueError for out-of-range perturbation parameters."""
    if not 0.0 <= spec.defect_fraction <= 1.0:
        raise ValueError(
            f"Defect fraction must be within [0, 1], got {spec.defect_fraction}"
        )
    if spec.jitter < 0.0:
        raise ValueError(f"Jitter magnitude must be non-negative, got {spec.jitter}")
    if not spec.axes or set(spec.axes) - set(AXES) or len(set(spec.axes)) != len(spec.axes):
        raise ValueError(f"Jitter axes must be distinct letters of 'xyz', got '{spec.axes}'")


def draws_per_atom(spec: PerturbationSpec) -> int:
    n = 0
    if spec.defect_fraction > 0.0:
        n += 1
    if spec.jitter > 0.0:
        n += len(spec.axes)
    return n


def jitter_offsets(
    uniforms: np.ndarray,
    magnitude: float,
    distribution: JitterDistribution,
) -> np.ndarray:
    """Map uniform draws to displacements bounded by +-magnitude."""
    if distribution == JitterDistribution.UNIFORM:
        return (2.0 * uniforms - 1.0) * magnitude

    sigma = magnitude / NORMAL_SIGMAS
    return np.clip(ndtri(uniforms) * sigma, -magnitude, magnitude)


def perturb_layer(
    layer: Layer,
    spec: PerturbationSpec,
    random_state: RandomState,
) -> Layer:
    """
    Apply defect removal and jitter to a layer.

    Args:
        layer: Layer to perturb
        spec: Defect fraction and jitter settings
        random_state: Stream to consume draws from

    Returns:
        New Layer with removed atoms dropped and the rest displaced. The
        input layer itself is returned when the spec is a no-op.
    """
    validate_spec(spec)

    if spec.is_noop or len(layer) == 0:
        return layer

    n_atoms = len(layer)
    block = draws_per_atom(spec)
    draws = random_state.draw(n_atoms * block).reshape(n_atoms, block)

    column = 0
    keep = np.ones(n_atoms, dtype=bool)
    if spec.defect_fraction > 0.0:
        keep = draws[:, 0] >= spec.defect_fraction
        column = 1

    positions = layer.positions.copy()
    if spec.jitter > 0.0:
        offsets = jitter_offsets(draws[:, column:], spec.jitter, spec.distribution)
        axes = [AXES.index(axis) for axis in spec.axes]
        positions[:, axes] += offsets

    logger.debug(
        "Perturbed layer: removed %d of %d atoms, jitter %.4f (%s) on '%s'",
        n_atoms - int(keep.sum()), n_atoms, spec.jitter,
        spec.distribution.value, spec.axes,
    )

    return Layer(
        positions=positions[keep],
        names=layer.names[keep],
        elements=layer.elements[keep],
        cells=layer.cells[keep],
        box_size=layer.box_size,
        rotation=layer.rotation,
        z_offset=layer.z_offset,
        scale=layer.scale,
        shift=layer.shift,
        box_origin=layer.box_origin,
    )
