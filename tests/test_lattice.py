"""
Tests for lattice replication.
"""

import math

import numpy as np
import pytest
from scipy.spatial import cKDTree

from mdsubstrates import (
    AtomTemplate,
    FitPolicy,
    UnitCell,
    ExtentMismatchError,
    cell_counts,
    replicate_lattice,
    row_period,
    GRAPHENE,
    SILICA,
)


ATOM = AtomTemplate("A", "X", 0.0, 0.0)


def test_graphene_two_by_two_nm():
    """Test the atom count and box of a 2 x 2 nm graphene sheet."""
    lattice = replicate_lattice(GRAPHENE, (2.0, 2.0))

    # 2.0 / 0.24595 -> 9 columns, 2.0 / 0.426 -> 5 rows, 4 atoms per cell
    assert lattice.shape == (9, 5)
    assert len(lattice) == 180
    assert abs(lattice.box_size[0] - 9 * math.sqrt(3.0) * 0.142) < 1e-9
    assert abs(lattice.box_size[1] - 5 * 3.0 * 0.142) < 1e-9

    print("test_graphene_two_by_two_nm passed")


def test_graphene_is_a_honeycomb():
    """Test that nearest neighbours sit one bond length apart."""
    lattice = replicate_lattice(GRAPHENE, (2.0, 2.0))

    distances, _ = cKDTree(lattice.positions).query(lattice.positions, k=2)
    assert np.allclose(distances[:, 1], 0.142)

    # Interior atoms have exactly three neighbours
    tree = cKDTree(lattice.positions)
    counts = np.array([len(n) - 1 for n in tree.query_ball_point(lattice.positions, r=0.143)])
    assert counts.max() == 3

    print("test_graphene_is_a_honeycomb passed")


def test_no_duplicate_points():
    """Test that no two points coincide."""
    for extent in [(1.0, 1.0), (2.0, 3.5), (4.3, 0.7)]:
        lattice = replicate_lattice(GRAPHENE, extent)
        pairs = cKDTree(lattice.positions).query_pairs(r=1e-6)
        assert len(pairs) == 0

    print("test_no_duplicate_points passed")


def test_emission_order():
    """Test row-major (i, j) cell order with templates innermost."""
    lattice = replicate_lattice(GRAPHENE, (1.0, 1.0))
    a, b = GRAPHENE.a, GRAPHENE.b

    points = list(lattice.points)

    assert points[0].cell == (0, 0)
    assert abs(points[0].x - 0.25 * a) < 1e-12
    assert abs(points[0].y - b / 6.0) < 1e-12
    assert points[0].z == 0.0
    assert points[0].name == "C"
    assert points[0].element == "C"

    assert points[1].cell == (0, 0)
    assert abs(points[1].x - 0.75 * a) < 1e-12

    # j varies fastest
    assert points[4].cell == (0, 1)
    assert abs(points[4].y - (b + b / 6.0)) < 1e-12

    print("test_emission_order passed")


def test_at_least_covers_extent():
    """Test that the replicated box is at least the requested extent."""
    for extent in [(0.1, 0.1), (1.0, 2.0), (2.0, 2.0), (7.3, 3.1)]:
        lattice = replicate_lattice(GRAPHENE, extent, fit=FitPolicy.AT_LEAST)
        assert lattice.box_size[0] >= extent[0]
        assert lattice.box_size[1] >= extent[1]

    print("test_at_least_covers_extent passed")


def test_whole_cells_do_not_round_up():
    """Test that an extent of whole cells gives exactly those cells."""
    extent = (3 * GRAPHENE.a, 2 * GRAPHENE.b)

    assert cell_counts(GRAPHENE, extent, FitPolicy.AT_LEAST) == (3, 2)
    assert cell_counts(GRAPHENE, extent, FitPolicy.EXACT) == (3, 2)

    lattice = replicate_lattice(GRAPHENE, extent, fit=FitPolicy.EXACT)
    assert len(lattice) == 3 * 2 * 4

    print("test_whole_cells_do_not_round_up passed")


def test_exact_fit_mismatch():
    """Test that an unreachable exact extent reports the achievable one."""
    with pytest.raises(ExtentMismatchError) as excinfo:
        replicate_lattice(GRAPHENE, (2.0, 2.0), fit=FitPolicy.EXACT)

    achievable = excinfo.value.achievable
    assert abs(achievable[0] - 8 * GRAPHENE.a) < 1e-9
    assert abs(achievable[1] - 5 * GRAPHENE.b) < 1e-9

    # Retrying with the achievable extent succeeds
    lattice = replicate_lattice(GRAPHENE, achievable, fit=FitPolicy.EXACT)
    assert lattice.shape == (8, 5)

    print("test_exact_fit_mismatch passed")


def test_shared_edge_atoms_are_kept_once():
    """Test deduplication of atoms on shared cell edges."""
    cell = UnitCell(
        name="edges",
        a=1.0,
        b=1.0,
        gamma=math.pi / 2.0,
        atoms=(
            AtomTemplate("A", "X", 0.0, 0.5),
            AtomTemplate("B", "X", 1.0, 0.5),
        ),
    )
    lattice = replicate_lattice(cell, (3.0, 1.0))

    assert lattice.shape == (3, 1)
    assert len(lattice) == 3
    assert np.allclose(lattice.positions[:, 0], [0.0, 1.0, 2.0])

    # The first emitted instance survives
    assert list(lattice.names) == ["A", "B", "B"]
    assert lattice.cells.tolist() == [[0, 0], [0, 0], [1, 0]]

    print("test_shared_edge_atoms_are_kept_once passed")


def test_oblique_rows_are_wrapped():
    """Test that sheared rows of an oblique cell are wrapped into the box."""
    cell = UnitCell.hexagonal("hex", 1.0, [AtomTemplate("A", "X", 0.0, 0.0)])
    lattice = replicate_lattice(cell, (3.0, math.sqrt(3.0)))

    assert lattice.shape == (3, 2)
    assert len(lattice) == 6

    x = lattice.positions[:, 0]
    assert np.all(x >= 0.0)
    assert np.all(x < 3.0)
    assert sorted(np.round(x[lattice.cells[:, 1] == 1], 9)) == [0.5, 1.5, 2.5]

    print("test_oblique_rows_are_wrapped passed")


def test_template_height():
    """Test that fractional w is scaled by the cell height."""
    cell = UnitCell(
        name="column",
        a=1.0,
        b=1.0,
        gamma=math.pi / 2.0,
        atoms=(
            AtomTemplate("TOP", "X", 0.5, 0.5, 1.0),
            AtomTemplate("BOT", "X", 0.5, 0.5, 0.0),
        ),
        height=0.3,
    )
    lattice = replicate_lattice(cell, (1.0, 1.0))

    assert len(lattice) == 2
    assert np.allclose(lattice.positions[:, 2], [0.3, 0.0])

    print("test_template_height passed")


def test_invalid_extent():
    """Test that non-positive extents are rejected."""
    with pytest.raises(ValueError):
        replicate_lattice(GRAPHENE, (0.0, 1.0))

    with pytest.raises(ValueError):
        replicate_lattice(GRAPHENE, (1.0, -2.0))

    print("test_invalid_extent passed")


def test_lattice_is_read_only():
    """Test that replicated points cannot be modified in place."""
    lattice = replicate_lattice(GRAPHENE, (1.0, 1.0))

    assert not lattice.positions.flags.writeable
    with pytest.raises(ValueError):
        lattice.positions[0, 0] = 10.0

    print("test_lattice_is_read_only passed")


def periodic_min_distance(positions, box):
    """Smallest minimum-image distance between distinct points in a box."""
    box = np.asarray(box, dtype=float)
    diff = positions[:, None, :] - positions[None, :, :]
    diff -= box * np.round(diff / box)
    distances = np.linalg.norm(diff, axis=-1)
    np.fill_diagonal(distances, np.inf)
    return distances.min()


def test_row_period():
    """Test the row period of rectangular and oblique cells."""
    assert row_period(GRAPHENE) == 1
    assert row_period(SILICA) == 2
    assert row_period(UnitCell.triclinic("mono", 1.0, 1.0, 60.0, [ATOM])) == 2
    assert row_period(UnitCell.triclinic("skew", 1.0, 2.0 / 3.0, 60.0, [ATOM])) == 3

    print("test_row_period passed")


def test_hexagonal_rows_repeat_along_y():
    """Test that an odd row count is rounded up so the box tiles along y."""
    lattice = replicate_lattice(SILICA, (1.0, 1.0))

    # 1.0 / 0.3897 -> 3 rows, rounded up to the row period of 2
    assert lattice.shape == (3, 4)
    assert abs(lattice.box_size[1] - 4 * SILICA.row_spacing) < 1e-12

    silicon = lattice.positions[lattice.elements == "Si"][:, :2]
    assert len(silicon) == 12
    assert abs(periodic_min_distance(silicon, lattice.box_size) - SILICA.a) < 1e-9

    print("test_hexagonal_rows_repeat_along_y passed")


def test_exact_fit_needs_whole_row_period():
    """Test that an exact extent with an odd hexagonal row count is rejected."""
    extent = (3 * SILICA.a, 3 * SILICA.row_spacing)
    with pytest.raises(ExtentMismatchError) as excinfo:
        replicate_lattice(SILICA, extent, fit=FitPolicy.EXACT)

    achievable = excinfo.value.achievable
    assert abs(achievable[1] - 4 * SILICA.row_spacing) < 1e-9

    lattice = replicate_lattice(SILICA, achievable, fit=FitPolicy.EXACT)
    assert lattice.shape == (3, 4)

    print("test_exact_fit_needs_whole_row_period passed")


def test_chained_near_duplicates():
    """Test that a point is only dropped next to a point that was kept."""
    cell = UnitCell(
        name="chain",
        a=1.0,
        b=1.0,
        gamma=math.pi / 2.0,
        atoms=(
            AtomTemplate("A", "X", 0.1, 0.5),
            AtomTemplate("B", "X", 0.1 + 0.8e-6, 0.5),
            AtomTemplate("C", "X", 0.1 + 1.6e-6, 0.5),
        ),
    )
    lattice = replicate_lattice(cell, (1.0, 1.0))

    # B is within tolerance of A, C only of the dropped B
    assert list(lattice.names) == ["A", "C"]

    print("test_chained_near_duplicates passed")


def run_all_tests():
    """Run all lattice tests."""
    print("\n=== Testing Lattice Replication ===\n")

    test_graphene_two_by_two_nm()
    test_graphene_is_a_honeycomb()
    test_no_duplicate_points()
    test_emission_order()
    test_at_least_covers_extent()
    test_whole_cells_do_not_round_up()
    test_exact_fit_mismatch()
    test_shared_edge_atoms_are_kept_once()
    test_oblique_rows_are_wrapped()
    test_template_height()
    test_invalid_extent()
    test_lattice_is_read_only()
    test_row_period()
    test_hexagonal_rows_repeat_along_y()
    test_exact_fit_needs_whole_row_period()
    test_chained_near_duplicates()

    print("\n=== All lattice tests passed! ===\n")


if __name__ == "__main__":
    run_all_tests()
