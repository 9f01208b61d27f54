#!/usr/bin/env python3
"""
Build a (possibly twisted and defective) graphene bilayer on a silica slab.

Writes a GROMOS coordinate file and a preview image of the merged system.

Usage:
    python scripts/build_graphene_bilayer.py

    # Twisted bilayer with 2% vacancies, reproducible:
    python scripts/build_graphene_bilayer.py --twist 1.1 --defects 0.02 --seed 7

    # Without the silica support:
    python scripts/build_graphene_bilayer.py --no-silica --output ./output/bilayer
"""

import argparse
import logging
import math
import sys
from pathlib import Path


def main():
    parser = argparse.ArgumentParser(
        description="Build a graphene bilayer for MD simulations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__.split("Usage:")[0],
    )
    parser.add_argument(
        "--size",
        nargs=2,
        type=float,
        default=[5.0, 5.0],
        metavar=("X", "Y"),
        help="Requested substrate size in nm (default: 5 5)",
    )
    parser.add_argument(
        "--twist",
        type=float,
        default=0.0,
        help="Rotation of the top layer in degrees (default: 0)",
    )
    parser.add_argument(
        "--defects",
        type=float,
        default=0.0,
        help="Fraction of carbon atoms removed (default: 0)",
    )
    parser.add_argument(
        "--roughness",
        type=float,
        default=0.0,
        help="Maximum out-of-plane jitter in nm (default: 0)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for defects and roughness",
    )
    parser.add_argument(
        "--no-silica",
        action="store_true",
        help="Do not put a silica slab under the bilayer",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("./output/graphene_bilayer"),
        help="Output path without extension (default: ./output/graphene_bilayer)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging",
    )

    args = parser.parse_args()

    # Import here to allow script to show help without package installed
    from mdsubstrates import (
        GRAPHENE,
        SILICA,
        BuildError,
        LayerSpec,
        MergeError,
        PerturbationSpec,
        build_substrate,
        merge_systems,
        write_gro,
    )
    from mdsubstrates.logging_config import setup_logging
    from mdsubstrates.visualization.charts import plot_system_preview

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    perturbation = PerturbationSpec(
        defect_fraction=args.defects,
        jitter=args.roughness,
        axes="z",
        seed=args.seed,
    )

    substrates = []
    graphene_z = 0.0

    try:
        if not args.no_silica:
            silica = build_substrate(SILICA, tuple(args.size), [LayerSpec()],
                                     residue_template="SIO", name="silica")
            substrates.append(silica)
            graphene_z = silica.box_bounds[2][1] + 0.3

        bilayer = build_substrate(
            GRAPHENE,
            tuple(args.size),
            [LayerSpec(), LayerSpec(rotation=math.radians(args.twist))],
            perturbation,
            residue_template="GR{index}",
            name="graphene bilayer",
            position=(0.0, 0.0, graphene_z),
        )
        substrates.append(bilayer)

        system = merge_systems(substrates, box_padding=(0.0, 0.0, 1.0),
                               title="Graphene bilayer")
    except (BuildError, MergeError, ValueError) as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    gro_path = write_gro(system, args.output)
    preview_path = plot_system_preview(system, args.output.with_suffix(".png"))

    print(system.describe())
    print(f"Coordinates: {gro_path}")
    print(f"Preview: {preview_path}")

    if system.overlaps:
        print(f"WARNING: {len(system.overlaps)} overlapping atom pairs")


if __name__ == "__main__":
    main()
