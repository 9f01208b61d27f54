"""
System merging: combine substrates into one numbered coordinate system.
"""

import logging
from typing import Optional, Sequence, Union

import numpy as np
from scipy.spatial import cKDTree

from mdsubstrates.exceptions import MergeError
from mdsubstrates.models import Bounds, OverlapWarning, Substrate, System


logger = logging.getLogger(__name__)


def _check_numbering(substrate: Substrate) -> None:
    n_atoms = substrate.num_atoms
    if n_atoms == 0:
        raise MergeError(f"Substrate '{substrate.name}' has no atoms")

    if not np.array_equal(substrate.atom_indices, np.arange(1, n_atoms + 1)):
        raise MergeError(
            f"Atom numbering of substrate '{substrate.name}' is not contiguous from 1"
        )

    residues = substrate.residue_indices
    steps = np.diff(residues)
    if (residues[0] != 1 or residues[-1] != substrate.num_residues
            or np.any(steps < 0) or np.any(steps > 1)):
        raise MergeError(
            f"Residue numbering of substrate '{substrate.name}' is not contiguous from 1"
        )


def padded_bounds(
    substrates: Sequence[Substrate],
    padding: Union[float, Sequence[float]] = 0.0,
) -> Bounds:
    """
    Simulation box around a set of substrates, grown by `padding` on every side.

    In the plane the box is the union of the periodic lattice boxes, so a
    single sheet keeps its lattice period. Along z it is the union of the
    atom bounds.
    """
    pad = np.broadcast_to(np.asarray(padding, dtype=float), (3,))
    if np.any(pad < 0.0):
        raise ValueError(f"Box padding must be non-negative, got {padding}")

    lo = np.min([
        [s.lattice_bounds[0][0], s.lattice_bounds[1][0], s.box_bounds[2][0]]
        for s in substrates
    ], axis=0) - pad
    hi = np.max([
        [s.lattice_bounds[0][1], s.lattice_bounds[1][1], s.box_bounds[2][1]]
        for s in substrates
    ], axis=0) + pad
    return tuple((float(lo[k]), float(hi[k])) for k in range(3))


def find_overlaps(positions: np.ndarray, min_separation: float) -> list[OverlapWarning]:
    """
    Find all atom pairs closer than `min_separation`.

    Returns:
        OverlapWarnings with 1-based atom indices, sorted by atom pair
    """
    if len(positions) < 2:
        return []

    tree = cKDTree(positions)
    pairs = tree.query_pairs(r=min_separation, output_type="ndarray")
    if len(pairs) == 0:
        return []

    pairs = pairs[np.lexsort((pairs[:, 1], pairs[:, 0]))]
    distances = np.linalg.norm(positions[pairs[:, 0]] - positions[pairs[:, 1]], axis=1)

    # query_pairs includes pairs at exactly r
    closer = distances < min_separation
    pairs, distances = pairs[closer], distances[closer]

    return [
        OverlapWarning(atom_a=int(a) + 1, atom_b=int(b) + 1, distance=float(d))
        for (a, b), d in zip(pairs, distances)
    ]


def merge_substrates(
    substrates: Sequence[Substrate],
    box_padding: Union[float, Sequence[float]] = 0.0,
    min_separation: Optional[float] = 0.1,
    title: str = "Substrate system",
) -> System:
    """
    Merge substrates into one system, in input order.

    Atom and residue indices are renumbered globally so that they stay
    unique and contiguous. Atoms closer than `min_separation` are reported
    as OverlapWarnings on the system; none are removed.

    Args:
        substrates: Substrates to merge
        box_padding: Margin added around the union of bounding boxes,
            a scalar or one value per axis
        min_separation: Overlap distance, None or 0 disables the check
        title: System title

    Returns:
        Merged System

    Raises:
        MergeError: If no substrates are given or their numbering is broken
    """
    substrates = tuple(substrates)
    if not substrates:
        raise MergeError("No substrates to merge")

    for substrate in substrates:
        _check_numbering(substrate)

    atom_offsets = np.cumsum([0] + [s.num_atoms for s in substrates[:-1]])
    residue_offsets = np.cumsum([0] + [s.num_residues for s in substrates[:-1]])

    positions = np.concatenate([s.positions for s in substrates])
    atom_indices = np.concatenate([
        s.atom_indices + offset for s, offset in zip(substrates, atom_offsets)
    ])
    residue_indices = np.concatenate([
        s.residue_indices + offset for s, offset in zip(substrates, residue_offsets)
    ])

    overlaps = []
    if min_separation:
        overlaps = find_overlaps(positions, min_separation)
        if overlaps:
            logger.warning(
                "%d atom pairs are closer than %.4f (closest %.4f)",
                len(overlaps), min_separation, min(o.distance for o in overlaps),
            )

    system = System(
        title=title,
        substrates=substrates,
        positions=positions,
        names=np.concatenate([s.names for s in substrates]),
        elements=np.concatenate([s.elements for s in substrates]),
        atom_indices=atom_indices,
        residue_indices=residue_indices,
        residue_names=np.concatenate([s.residue_names for s in substrates]),
        box_bounds=padded_bounds(substrates, box_padding),
        overlaps=overlaps,
    )

    logger.info("Merged %s", system.describe())
    return system
