"""
Data models for substrate construction.

This module defines the dataclasses that flow through the construction
pipeline: unit cells and their atom templates, replicated lattices, layers,
assembled substrates and merged systems, together with the plain
configuration values (layer and perturbation specs) that describe a request.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Optional, Sequence

import numpy as np

from mdsubstrates.exceptions import InvalidLatticeError


Bounds = tuple[tuple[float, float], tuple[float, float], tuple[float, float]]


class FitPolicy(Enum):
    """How a replicated lattice is fitted to a requested extent."""
    EXACT = "exact"
    AT_LEAST = "at_least"


class JitterDistribution(Enum):
    """Shape of the positional jitter distribution."""
    UNIFORM = "uniform"
    NORMAL = "normal"


# ============================================================================
# Unit Cells
# ============================================================================

@dataclass(frozen=True)
class AtomTemplate:
    """Atom position inside a unit cell, in fractional coordinates."""
    name: str
    element: str
    u: float
    v: float
    w: float = 0.0  # Fraction of the cell height


@dataclass(frozen=True)
class UnitCell:
    """
    Two-dimensional crystal basis with atom templates.

    Vector `a` lies along x and vector `b` is separated from it by the
    angle `gamma` (radians). An optional `height` converts the fractional
    `w` of the templates into a z position.
    """
    name: str
    a: float
    b: float
    gamma: float
    atoms: tuple[AtomTemplate, ...]
    height: float = 0.0

    def __post_init__(self):
        """Validate that the cell is non-degenerate."""
        object.__setattr__(self, "atoms", tuple(self.atoms))

        if not (self.a > 0.0 and self.b > 0.0):
            raise InvalidLatticeError(
                f"Unit cell '{self.name}' needs positive vector lengths, "
                f"got a={self.a}, b={self.b}"
            )
        if math.sin(self.gamma) < 1e-9:
            raise InvalidLatticeError(
                f"Unit cell '{self.name}' has collinear or left-handed basis vectors "
                f"(gamma={math.degrees(self.gamma):.3f} deg)"
            )
        if not self.atoms:
            raise InvalidLatticeError(f"Unit cell '{self.name}' has no atoms")
        if self.height < 0.0:
            raise InvalidLatticeError(
                f"Unit cell '{self.name}' has negative height {self.height}"
            )

    @classmethod
    def hexagonal(
        cls,
        name: str,
        a: float,
        atoms: Sequence[AtomTemplate],
        height: float = 0.0,
    ) -> "UnitCell":
        """Hexagonal cell: common vector length and 120 degrees between them."""
        return cls(name=name, a=a, b=a, gamma=2.0 * math.pi / 3.0,
                   atoms=tuple(atoms), height=height)

    @classmethod
    def triclinic(
        cls,
        name: str,
        a: float,
        b: float,
        gamma_degrees: float,
        atoms: Sequence[AtomTemplate],
        height: float = 0.0,
    ) -> "UnitCell":
        """Triclinic cell with the angle between the vectors given in degrees."""
        return cls(name=name, a=a, b=b, gamma=math.radians(gamma_degrees),
                   atoms=tuple(atoms), height=height)

    @property
    def vectors(self) -> np.ndarray:
        """Basis vectors as rows of a (2, 2) array."""
        return np.array([
            [self.a, 0.0],
            [self.b * math.cos(self.gamma), self.b * math.sin(self.gamma)],
        ])

    @property
    def row_spacing(self) -> float:
        """Distance between consecutive rows of cells along y."""
        return self.b * math.sin(self.gamma)

    @property
    def area(self) -> float:
        return abs(self.a * self.row_spacing)

    def fractional_to_cartesian(self, u, v):
        """
        Convert fractional cell coordinates to cartesian (x, y).

        Accepts scalars or numpy arrays of equal shape.
        """
        x = u * self.a + v * self.b * math.cos(self.gamma)
        y = v * self.row_spacing
        return x, y


def graphene_cell(bond_length: float = 0.142) -> UnitCell:
    """
    Orthogonal four-atom graphene cell (armchair direction along y).

    The cell spans sqrt(3) bond lengths along x and three along y. Atoms are
    placed strictly inside the cell so that no atom sits on a cell edge.
    """
    return UnitCell(
        name="graphene",
        a=math.sqrt(3.0) * bond_length,
        b=3.0 * bond_length,
        gamma=math.pi / 2.0,
        atoms=(
            AtomTemplate("C", "C", 0.25, 1.0 / 6.0),
            AtomTemplate("C", "C", 0.75, 1.0 / 3.0),
            AtomTemplate("C", "C", 0.75, 2.0 / 3.0),
            AtomTemplate("C", "C", 0.25, 5.0 / 6.0),
        ),
    )


# ============================================================================
# Replicated Points, Layers and Substrates
# ============================================================================

def _frozen(array: np.ndarray) -> np.ndarray:
    array = np.ascontiguousarray(array)
    array.setflags(write=False)
    return array


@dataclass(frozen=True)
class LatticePoint:
    """Single atom instance of a replicated lattice."""
    x: float
    y: float
    z: float
    name: str
    element: str
    cell: tuple[int, int]


@dataclass(frozen=True, eq=False)
class Lattice:
    """Replicated unit cell: flat point arrays in emission order."""
    cell: UnitCell
    positions: np.ndarray   # shape: (n_atoms, 3)
    names: np.ndarray       # shape: (n_atoms,)
    elements: np.ndarray    # shape: (n_atoms,)
    cells: np.ndarray       # shape: (n_atoms, 2), owning cell (i, j)
    shape: tuple[int, int]  # (nx, ny) number of cells
    box_size: tuple[float, float]
    box_origin: tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        for name in ("positions", "names", "elements", "cells"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    def __len__(self) -> int:
        return len(self.positions)

    @property
    def points(self) -> Iterator[LatticePoint]:
        for (x, y, z), name, element, (i, j) in zip(
            self.positions, self.names, self.elements, self.cells
        ):
            yield LatticePoint(float(x), float(y), float(z),
                               str(name), str(element), (int(i), int(j)))


@dataclass(frozen=True, eq=False)
class Layer:
    """
    One planar sheet of lattice atoms placed in 3D space.

    `box_origin` and `box_size` describe the periodic lattice box in the
    plane. The box follows scaling and shifts but not rotation.
    """
    positions: np.ndarray
    names: np.ndarray
    elements: np.ndarray
    cells: np.ndarray
    box_size: tuple[float, float]
    rotation: float = 0.0
    z_offset: float = 0.0
    scale: float = 1.0
    shift: tuple[float, float] = (0.0, 0.0)
    box_origin: tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        for name in ("positions", "names", "elements", "cells"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    def __len__(self) -> int:
        return len(self.positions)


@dataclass
class Atom:
    """Numbered atom, ready for output."""
    atom_index: int
    atom_name: str
    element: str
    residue_index: int
    residue_name: str
    x: float
    y: float
    z: float


def _iter_atoms(positions, names, elements, atom_indices,
                residue_indices, residue_names) -> Iterator[Atom]:
    for (x, y, z), name, element, atom_index, residue_index, residue_name in zip(
        positions, names, elements, atom_indices, residue_indices, residue_names
    ):
        yield Atom(
            atom_index=int(atom_index),
            atom_name=str(name),
            element=str(element),
            residue_index=int(residue_index),
            residue_name=str(residue_name),
            x=float(x),
            y=float(y),
            z=float(z),
        )


def bounds_of(positions: np.ndarray) -> Bounds:
    """Componentwise (min, max) over a non-empty (n, 3) position array."""
    lo = positions.min(axis=0)
    hi = positions.max(axis=0)
    return tuple((float(lo[k]), float(hi[k])) for k in range(3))


@dataclass(frozen=True, eq=False)
class Substrate:
    """
    Stack of layers forming one logical structure.

    Every layer is one residue. Residue indices run 1..n_layers and atom
    indices 1..n_atoms, contiguous in layer order.
    """
    name: str
    residue_template: str
    layers: tuple[Layer, ...]
    positions: np.ndarray
    names: np.ndarray
    elements: np.ndarray
    atom_indices: np.ndarray
    residue_indices: np.ndarray
    residue_names: np.ndarray   # per atom
    box_bounds: Bounds
    box_size: tuple[float, float]
    box_origin: tuple[float, float] = (0.0, 0.0)

    def __post_init__(self):
        object.__setattr__(self, "layers", tuple(self.layers))
        for name in ("positions", "names", "elements", "atom_indices",
                     "residue_indices", "residue_names"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    @property
    def num_atoms(self) -> int:
        return len(self.positions)

    @property
    def num_residues(self) -> int:
        return len(self.layers)

    @property
    def atoms(self) -> Iterator[Atom]:
        return _iter_atoms(self.positions, self.names, self.elements,
                           self.atom_indices, self.residue_indices,
                           self.residue_names)

    def translate(self, shift: Sequence[float]) -> "Substrate":
        """Return a copy of the substrate moved by `shift` (x, y, z)."""
        shift = np.asarray(shift, dtype=float)
        if shift.shape != (3,):
            raise ValueError(f"Translation needs three components, got {shift.shape}")

        layers = tuple(
            Layer(
                positions=layer.positions + shift,
                names=layer.names,
                elements=layer.elements,
                cells=layer.cells,
                box_size=layer.box_size,
                rotation=layer.rotation,
                z_offset=layer.z_offset + float(shift[2]),
                scale=layer.scale,
                shift=(layer.shift[0] + float(shift[0]), layer.shift[1] + float(shift[1])),
                box_origin=(layer.box_origin[0] + float(shift[0]),
                            layer.box_origin[1] + float(shift[1])),
            )
            for layer in self.layers
        )
        positions = self.positions + shift
        return Substrate(
            name=self.name,
            residue_template=self.residue_template,
            layers=layers,
            positions=positions,
            names=self.names,
            elements=self.elements,
            atom_indices=self.atom_indices,
            residue_indices=self.residue_indices,
            residue_names=self.residue_names,
            box_bounds=bounds_of(positions),
            box_size=self.box_size,
            box_origin=(self.box_origin[0] + float(shift[0]),
                        self.box_origin[1] + float(shift[1])),
        )

    @property
    def lattice_bounds(self) -> tuple[tuple[float, float], tuple[float, float]]:
        """In-plane periodic box of the replicated lattice, ((xlo, xhi), (ylo, yhi))."""
        (x0, y0), (lx, ly) = self.box_origin, self.box_size
        return (x0, x0 + lx), (y0, y0 + ly)

    def describe(self) -> str:
        (xlo, xhi), (ylo, yhi), (zlo, zhi) = self.box_bounds
        return (
            f"{self.name} ({self.num_residues} layers, {self.num_atoms} atoms, "
            f"bounds x [{xlo:.3f}, {xhi:.3f}] y [{ylo:.3f}, {yhi:.3f}] "
            f"z [{zlo:.3f}, {zhi:.3f}])"
        )


@dataclass(frozen=True)
class OverlapWarning:
    """Two atoms of a merged system closer than the minimum separation."""
    atom_a: int  # 1-based global atom index
    atom_b: int
    distance: float


@dataclass(frozen=True, eq=False)
class System:
    """All substrates merged into one simulation-ready configuration."""
    title: str
    substrates: tuple[Substrate, ...]
    positions: np.ndarray
    names: np.ndarray
    elements: np.ndarray
    atom_indices: np.ndarray
    residue_indices: np.ndarray
    residue_names: np.ndarray
    box_bounds: Bounds
    overlaps: tuple[OverlapWarning, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "substrates", tuple(self.substrates))
        object.__setattr__(self, "overlaps", tuple(self.overlaps))
        for name in ("positions", "names", "elements", "atom_indices",
                     "residue_indices", "residue_names"):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    @property
    def num_atoms(self) -> int:
        return len(self.positions)

    @property
    def num_residues(self) -> int:
        return int(self.residue_indices.max()) if self.num_atoms else 0

    @property
    def box_size(self) -> tuple[float, float, float]:
        """Simulation box dimensions (x, y, z)."""
        return tuple(hi - lo for lo, hi in self.box_bounds)

    @property
    def atoms(self) -> Iterator[Atom]:
        return _iter_atoms(self.positions, self.names, self.elements,
                           self.atom_indices, self.residue_indices,
                           self.residue_names)

    def describe(self) -> str:
        x, y, z = self.box_size
        return (
            f"{self.title}: {len(self.substrates)} substrates, "
            f"{self.num_atoms} atoms, {self.num_residues} residues, "
            f"box {x:.3f} x {y:.3f} x {z:.3f}, {len(self.overlaps)} overlaps"
        )


# ============================================================================
# Construction Requests
# ============================================================================

@dataclass
class PerturbationSpec:
    """Random defects and roughness applied to the atoms of a layer."""
    defect_fraction: float = 0.0
    jitter: float = 0.0  # Maximum displacement per axis
    distribution: JitterDistribution = JitterDistribution.UNIFORM
    axes: str = "xyz"
    seed: Optional[int] = None

    @property
    def is_noop(self) -> bool:
        return self.defect_fraction == 0.0 and self.jitter == 0.0


@dataclass
class LayerSpec:
    """
    Placement of one layer in a stack.

    The layer sits at `z_offset` when given, otherwise `spacing` above the
    previous layer (the first layer defaults to z = 0).
    """
    z_offset: Optional[float] = None
    spacing: float = 0.335  # Interlayer distance of graphite (nm)
    rotation: float = 0.0   # Radians, counter-clockwise
    scale: float = 1.0
    shift: tuple[float, float] = (0.0, 0.0)
    perturbation: Optional[PerturbationSpec] = None


@dataclass
class SubstrateRequest:
    """All values needed to build one substrate."""
    unit_cell: UnitCell
    extent: tuple[float, float]
    layers: list[LayerSpec] = field(default_factory=lambda: [LayerSpec()])
    perturbation: PerturbationSpec = field(default_factory=PerturbationSpec)
    residue_template: str = "SUB"
    name: Optional[str] = None
    fit: FitPolicy = FitPolicy.AT_LEAST
    position: tuple[float, float, float] = (0.0, 0.0, 0.0)


# ============================================================================
# Predefined Unit Cells
# ============================================================================

# Graphene with a C-C bond length of 0.142 nm
GRAPHENE = graphene_cell(0.142)

# Silica: an O-Si-O column on a hexagonal 0.450 nm cell, 0.151 nm Si-O
SILICA = UnitCell.hexagonal(
    name="silica",
    a=0.450,
    atoms=(
        AtomTemplate("O1", "O", 1.0 / 3.0, 1.0 / 3.0, 1.0),
        AtomTemplate("SI", "Si", 1.0 / 3.0, 1.0 / 3.0, 0.5),
        AtomTemplate("O2", "O", 1.0 / 3.0, 1.0 / 3.0, 0.0),
    ),
    height=0.302,
)
