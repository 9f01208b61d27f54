"""
Substrate assembly: stack layers and number residues and atoms.
"""

import logging
from typing import Optional, Sequence

import numpy as np

from mdsubstrates.exceptions import EmptySubstrateError
from mdsubstrates.models import Layer, Substrate, bounds_of


logger = logging.getLogger(__name__)


def residue_name(template: str, index: int) -> str:
    """Format a residue name template, e.g. "GR{index}" -> "GR2"."""
    return template.format(index=index)


def assemble_substrate(
    layers: Sequence[Layer],
    residue_template: str,
    name: Optional[str] = None,
) -> Substrate:
    """
    Stack layers into one substrate.

    Each layer becomes one residue, numbered from 1 in stacking order. Atom
    indices run from 1 and are contiguous in layer order. Layers that lost
    all of their atoms are left out of the stack.

    Args:
        layers: Layers in stacking order
        residue_template: Residue name, optionally with an {index} field
        name: Substrate name (defaults to the first residue name)

    Returns:
        Assembled Substrate

    Raises:
        EmptySubstrateError: If the layers contain no atoms at all
    """
    n_layers = len(layers)
    layers = tuple(layer for layer in layers if len(layer) > 0)

    if not layers:
        raise EmptySubstrateError(
            f"Substrate '{name or residue_template}' has no atoms left "
            f"in {n_layers} layers"
        )
    if len(layers) < n_layers:
        logger.warning(
            "Dropped %d empty layers from substrate '%s'",
            n_layers - len(layers), name or residue_template,
        )

    n_atoms = sum(len(layer) for layer in layers)

    residue_names = [residue_name(residue_template, k + 1) for k in range(len(layers))]
    counts = [len(layer) for layer in layers]

    positions = np.concatenate([layer.positions for layer in layers])
    names = np.concatenate([layer.names for layer in layers])
    elements = np.concatenate([layer.elements for layer in layers])
    residue_indices = np.repeat(np.arange(1, len(layers) + 1), counts)
    per_atom_residue_names = np.repeat(np.array(residue_names), counts)
    atom_indices = np.arange(1, n_atoms + 1)

    # Lattice box of the stack: union of the layer boxes
    box_lo = np.min([layer.box_origin for layer in layers], axis=0)
    box_hi = np.max([np.add(layer.box_origin, layer.box_size) for layer in layers], axis=0)

    substrate = Substrate(
        name=name or residue_names[0],
        residue_template=residue_template,
        layers=layers,
        positions=positions,
        names=names,
        elements=elements,
        atom_indices=atom_indices,
        residue_indices=residue_indices,
        residue_names=per_atom_residue_names,
        box_bounds=bounds_of(positions),
        box_size=(float(box_hi[0] - box_lo[0]), float(box_hi[1] - box_lo[1])),
        box_origin=(float(box_lo[0]), float(box_lo[1])),
    )

    logger.info("Assembled %s", substrate.describe())
    return substrate
