"""
High-level construction pipelines.

This module chains the construction stages together:
replicate -> place layers -> perturb -> assemble -> merge.
"""

import logging
from typing import Optional, Sequence, Union

from mdsubstrates.models import (
    FitPolicy,
    LayerSpec,
    PerturbationSpec,
    Substrate,
    SubstrateRequest,
    System,
    UnitCell,
)
from mdsubstrates.core.lattice import replicate_lattice
from mdsubstrates.core.layers import build_layer
from mdsubstrates.core.perturbation import RandomState, perturb_layer, validate_spec
from mdsubstrates.core.assembly import assemble_substrate
from mdsubstrates.core.merge import merge_substrates


logger = logging.getLogger(__name__)


def layer_heights(layer_specs: Sequence[LayerSpec]) -> list[float]:
    """
    Resolve the z position of every layer in a stack.

    A layer with an explicit z_offset sits there; otherwise it sits
    `spacing` above the previous layer. The first layer defaults to 0.
    """
    heights = []
    for k, spec in enumerate(layer_specs):
        if spec.z_offset is not None:
            heights.append(spec.z_offset)
        elif k == 0:
            heights.append(0.0)
        else:
            heights.append(heights[-1] + spec.spacing)
    return heights


def build_substrate(
    unit_cell: UnitCell,
    extent: tuple[float, float],
    layer_specs: Sequence[LayerSpec],
    perturbation_spec: Optional[PerturbationSpec] = None,
    residue_template: str = "SUB",
    *,
    name: Optional[str] = None,
    fit: FitPolicy = FitPolicy.AT_LEAST,
    random_state: Optional[RandomState] = None,
    position: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> Substrate:
    """
    Build one substrate from a unit cell and a layer stack.

    The lattice is replicated once and every layer is placed from it. Layers
    are perturbed in stacking order from one RandomState, so the whole
    substrate is reproducible from its seed.

    Args:
        unit_cell: Crystal basis to replicate
        extent: Requested (width, height)
        layer_specs: One LayerSpec per layer, bottom to top
        perturbation_spec: Defects and jitter for all layers; a layer's own
            `perturbation` overrides it but draws from the same stream
        residue_template: Residue name, optionally with an {index} field
        name: Substrate name
        fit: Fit policy of the extent
        random_state: Stream to draw from, created from the spec seed if None
        position: Translation applied to the finished substrate

    Returns:
        Assembled Substrate

    Raises:
        BuildError: If the lattice, extent or perturbation make the
            substrate impossible
        ValueError: For out-of-range plain arguments

    Example:
        >>> from mdsubstrates import GRAPHENE, LayerSpec, build_substrate
        >>> bilayer = build_substrate(GRAPHENE, (5.0, 5.0), [LayerSpec(), LayerSpec()],
        ...                           residue_template="GR{index}")
        >>> print(bilayer.describe())
    """
    if not layer_specs:
        raise ValueError("At least one layer is needed to build a substrate")

    perturbation_spec = perturbation_spec or PerturbationSpec()
    validate_spec(perturbation_spec)
    for spec in layer_specs:
        if spec.perturbation is not None:
            validate_spec(spec.perturbation)

    if random_state is None:
        random_state = RandomState.from_spec(perturbation_spec)

    # Step 1: Replicate the unit cell
    lattice = replicate_lattice(unit_cell, extent, fit=fit)

    # Step 2: Place and perturb each layer
    layers = []
    for spec, z in zip(layer_specs, layer_heights(layer_specs)):
        layer = build_layer(lattice, z_offset=z, rotation=spec.rotation,
                            scale=spec.scale, shift=spec.shift)
        layer = perturb_layer(layer, spec.perturbation or perturbation_spec, random_state)
        layers.append(layer)

    # Step 3: Stack into a substrate
    substrate = assemble_substrate(layers, residue_template, name=name or unit_cell.name)

    if any(position):
        substrate = substrate.translate(position)

    logger.debug("Random state after '%s': %r", substrate.name, random_state)
    return substrate


def merge_systems(
    substrates: Sequence[Substrate],
    box_padding: Union[float, Sequence[float]] = 0.0,
    *,
    min_separation: Optional[float] = 0.1,
    title: str = "Substrate system",
) -> System:
    """
    Combine substrates into the final system.

    Args:
        substrates: Substrates in output order
        box_padding: Margin around the union of bounding boxes
        min_separation: Distance below which atom pairs are reported
        title: System title

    Returns:
        Merged System, with any overlaps listed in `System.overlaps`

    Raises:
        MergeError: If the substrates cannot be merged
    """
    return merge_substrates(substrates, box_padding=box_padding,
                            min_separation=min_separation, title=title)


def build_system(
    requests: Sequence[SubstrateRequest],
    box_padding: Union[float, Sequence[float]] = 0.0,
    *,
    min_separation: Optional[float] = 0.1,
    title: str = "Substrate system",
) -> System:
    """
    Build every requested substrate and merge them.

    Each request draws from its own RandomState, seeded by its perturbation
    spec, so substrates do not influence each other's randomness.

    Example:
        >>> from mdsubstrates import GRAPHENE, SILICA, SubstrateRequest, build_system
        >>> system = build_system([
        ...     SubstrateRequest(SILICA, (4.0, 4.0), residue_template="SIO"),
        ...     SubstrateRequest(GRAPHENE, (4.0, 4.0), residue_template="GRPH",
        ...                      position=(0.0, 0.0, 1.0)),
        ... ], box_padding=0.5)
    """
    substrates = [
        build_substrate(
            request.unit_cell,
            request.extent,
            request.layers,
            request.perturbation,
            request.residue_template,
            name=request.name,
            fit=request.fit,
            position=request.position,
        )
        for request in requests
    ]
    return merge_systems(substrates, box_padding,
                         min_separation=min_separation, title=title)
