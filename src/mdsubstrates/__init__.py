"""
mdsubstrates - Substrate builder for molecular-dynamics simulations

Builds graphene sheets and other crystalline layers from a unit cell, stacks
them with per-layer transforms, applies seeded defects and roughness, and
merges substrates into one numbered system.

Example usage:
    >>> from mdsubstrates import GRAPHENE, LayerSpec, build_substrate, merge_systems
    >>> bilayer = build_substrate(GRAPHENE, (5.0, 5.0), [LayerSpec(), LayerSpec()],
    ...                           residue_template="GR{index}")
    >>> system = merge_systems([bilayer], box_padding=1.0)
    >>> print(system.describe())
"""

# Models and configuration
from mdsubstrates.models import (
    # Enums
    FitPolicy,
    JitterDistribution,
    # Unit cells
    AtomTemplate,
    UnitCell,
    graphene_cell,
    # Structure data
    LatticePoint,
    Lattice,
    Layer,
    Atom,
    Substrate,
    OverlapWarning,
    System,
    # Construction requests
    LayerSpec,
    PerturbationSpec,
    SubstrateRequest,
    # Predefined unit cells
    GRAPHENE,
    SILICA,
)

from mdsubstrates.exceptions import (
    BuildError,
    InvalidLatticeError,
    ExtentMismatchError,
    EmptySubstrateError,
    MergeError,
)

# Construction stages
from mdsubstrates.core.lattice import (
    cell_counts,
    replicate_lattice,
    row_period,
)

from mdsubstrates.core.layers import (
    build_layer,
    compose,
    rotate_about_centroid,
    scale_about_centroid,
    translate,
)

from mdsubstrates.core.perturbation import (
    RandomState,
    perturb_layer,
)

from mdsubstrates.core.assembly import (
    assemble_substrate,
)

from mdsubstrates.core.merge import (
    find_overlaps,
    merge_substrates,
)

# High-level pipelines
from mdsubstrates.pipelines import (
    build_substrate,
    merge_systems,
    build_system,
)

from mdsubstrates.output import (
    format_gro,
    write_gro,
)

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Enums
    "FitPolicy",
    "JitterDistribution",
    # Unit cells
    "AtomTemplate",
    "UnitCell",
    "graphene_cell",
    # Structure
    "LatticePoint",
    "Lattice",
    "Layer",
    "Atom",
    "Substrate",
    "OverlapWarning",
    "System",
    # Requests
    "LayerSpec",
    "PerturbationSpec",
    "SubstrateRequest",
    # Predefined unit cells
    "GRAPHENE",
    "SILICA",
    # Errors
    "BuildError",
    "InvalidLatticeError",
    "ExtentMismatchError",
    "EmptySubstrateError",
    "MergeError",
    # Stages
    "cell_counts",
    "replicate_lattice",
    "row_period",
    "build_layer",
    "compose",
    "rotate_about_centroid",
    "scale_about_centroid",
    "translate",
    "RandomState",
    "perturb_layer",
    "assemble_substrate",
    "find_overlaps",
    "merge_substrates",
    # Pipelines
    "build_substrate",
    "merge_systems",
    "build_system",
    # Output
    "format_gro",
    "write_gro",
]
