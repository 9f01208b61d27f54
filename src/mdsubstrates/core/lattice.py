"""
Lattice replication.

Tiles a unit cell across a rectangular extent. Cells are visited in (i, j)
row-major order with the atom templates innermost, which fixes the emission
order of every point downstream (numbering, perturbation draws).
"""

import logging
import math

import numpy as np
from scipy.spatial import cKDTree

from mdsubstrates.exceptions import ExtentMismatchError
from mdsubstrates.models import FitPolicy, Lattice, UnitCell


logger = logging.getLogger(__name__)


# Longest row period searched for when making an oblique box periodic along y
MAX_ROW_PERIOD = 12


def row_period(cell: UnitCell, tolerance: float = 1e-6) -> int:
    """
    Smallest number of rows whose accumulated shear is a whole number of cells.

    A rectangular box of oblique cells repeats along y only when its row
    count is a multiple of this period, e.g. 2 for a hexagonal cell and 1
    for a rectangular one. Cells whose shear is not commensurate with `a`
    within MAX_ROW_PERIOD rows get 1 and a warning.
    """
    shear = cell.b * math.cos(cell.gamma)
    for period in range(1, MAX_ROW_PERIOD + 1):
        offset = period * shear
        if abs(offset - round(offset / cell.a) * cell.a) < tolerance:
            return period

    logger.warning(
        "Rows of '%s' do not repeat within %d rows, box is not periodic along y",
        cell.name, MAX_ROW_PERIOD,
    )
    return 1


def cell_counts(
    cell: UnitCell,
    extent: tuple[float, float],
    fit: FitPolicy = FitPolicy.AT_LEAST,
    tolerance: float = 1e-6,
) -> tuple[int, int]:
    """
    Number of cells (nx, ny) needed to cover an extent.

    The row count is always a multiple of `row_period(cell)` so that the
    replicated box is periodic along y.

    Args:
        cell: Unit cell to replicate
        extent: Target (width, height) in the units of the cell
        fit: AT_LEAST rounds up, EXACT requires whole cells to match
        tolerance: Absolute length tolerance

    Returns:
        Tuple (nx, ny) of cell counts along x and y

    Raises:
        ValueError: If the extent is not positive
        ExtentMismatchError: If EXACT is requested and cannot be matched
    """
    width, height = extent
    if width <= 0.0 or height <= 0.0:
        raise ValueError(f"Extent must be positive, got {extent}")

    dx, dy = cell.a, cell.row_spacing
    period = row_period(cell, tolerance)

    if fit == FitPolicy.EXACT:
        nx = max(1, round(width / dx))
        ny = max(1, round(height / dy))
        ny = period * math.ceil(ny / period)
        achievable = (nx * dx, ny * dy)

        if abs(achievable[0] - width) > tolerance or abs(achievable[1] - height) > tolerance:
            raise ExtentMismatchError(
                f"Cannot fit {width:.6f} x {height:.6f} exactly with '{cell.name}' "
                f"cells, closest is {achievable[0]:.6f} x {achievable[1]:.6f}",
                achievable=achievable,
            )
        return nx, ny

    # A width that already is a whole number of cells should not gain a cell
    nx = max(1, math.ceil((width - tolerance) / dx))
    ny = max(1, math.ceil((height - tolerance) / dy))
    ny = period * math.ceil(ny / period)
    return nx, ny


def replicate_lattice(
    cell: UnitCell,
    extent: tuple[float, float],
    fit: FitPolicy = FitPolicy.AT_LEAST,
    tolerance: float = 1e-6,
) -> Lattice:
    """
    Replicate a unit cell over a rectangular extent.

    The replicated box is periodic along x: points of oblique cells that are
    sheared past the box edge are wrapped back into [0, nx * a). The row
    count is a multiple of `row_period(cell)`, which makes the box periodic
    along y as well. Points that
    coincide within `tolerance` (shared cell edges, wrapped points) are kept
    once, as the first one emitted.

    Args:
        cell: Unit cell to replicate
        extent: Target (width, height)
        fit: Fit policy for the extent
        tolerance: Absolute tolerance for extent matching and duplicates

    Returns:
        Lattice with the replicated points and the replicated box size
    """
    nx, ny = cell_counts(cell, extent, fit, tolerance)
    n_templates = len(cell.atoms)

    # Row-major cell order: i outer, j inner
    ii, jj = np.meshgrid(np.arange(nx), np.arange(ny), indexing="ij")
    ii, jj = ii.ravel(), jj.ravel()

    u = np.array([atom.u for atom in cell.atoms])
    v = np.array([atom.v for atom in cell.atoms])
    w = np.array([atom.w for atom in cell.atoms])

    x, y = cell.fractional_to_cartesian(
        (ii[:, None] + u[None, :]).ravel(),
        (jj[:, None] + v[None, :]).ravel(),
    )
    z = np.tile(w * cell.height, len(ii))

    box_x = nx * cell.a
    box_y = ny * cell.row_spacing

    x = np.mod(x, box_x)
    x[box_x - x < tolerance] -= box_x

    positions = np.column_stack([x, y, z])
    names = np.tile(np.array([atom.name for atom in cell.atoms]), len(ii))
    elements = np.tile(np.array([atom.element for atom in cell.atoms]), len(ii))
    cells = np.column_stack([np.repeat(ii, n_templates), np.repeat(jj, n_templates)])

    keep = _first_unique(positions, tolerance)
    n_duplicates = len(keep) - int(keep.sum())

    logger.debug(
        "Replicated '%s' on %d x %d cells: %d points (%d duplicates removed)",
        cell.name, nx, ny, int(keep.sum()), n_duplicates,
    )

    return Lattice(
        cell=cell,
        positions=positions[keep],
        names=names[keep],
        elements=elements[keep],
        cells=cells[keep],
        shape=(nx, ny),
        box_size=(box_x, box_y),
    )


def _first_unique(positions: np.ndarray, tolerance: float) -> np.ndarray:
    """
    Mask keeping the first of every group of points within tolerance.

    A point is dropped only when it is close to a point that is kept, so in
    a chain A ~ B ~ C with A and C apart, B is dropped and C survives.
    """
    keep = np.ones(len(positions), dtype=bool)
    if len(positions) < 2:
        return keep

    # query_pairs yields (i, j) with i < j; in order of i, keep[i] is final
    pairs = cKDTree(positions).query_pairs(r=tolerance, output_type="ndarray")
    if len(pairs):
        pairs = pairs[np.lexsort((pairs[:, 1], pairs[:, 0]))]
        for i, j in pairs:
            if keep[i]:
                keep[j] = False

    return keep
