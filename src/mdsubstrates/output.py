"""
Write merged systems to GROMOS (.gro) coordinate files.
"""

from pathlib import Path
from typing import Optional

from mdsubstrates.models import System


# GROMOS fixed-width fields wrap residue and atom numbers after five digits
GRO_INDEX_WRAP = 100_000


def format_gro(system: System, title: Optional[str] = None) -> str:
    """
    Format a system as GROMOS text.

    Positions are written relative to the lower box corner so that every
    atom lies inside the (0, 0, 0) based simulation box.
    """
    (xlo, _), (ylo, _), (zlo, _) = system.box_bounds

    lines = [title or system.title, f"{system.num_atoms}"]
    for atom in system.atoms:
        lines.append(
            f"{atom.residue_index % GRO_INDEX_WRAP:>5}"
            f"{atom.residue_name:<5.5}"
            f"{atom.atom_name:>5.5}"
            f"{atom.atom_index % GRO_INDEX_WRAP:>5}"
            f"{atom.x - xlo:>8.3f}{atom.y - ylo:>8.3f}{atom.z - zlo:>8.3f}"
        )

    box_x, box_y, box_z = system.box_size
    lines.append(f"{box_x:12.8f} {box_y:12.8f} {box_z:12.8f}")
    return "\n".join(lines) + "\n"


def write_gro(
    system: System,
    path: Path,
    title: Optional[str] = None,
) -> Path:
    """
    Write a system to a GROMOS coordinate file.

    Args:
        system: System to write
        path: Output file path, the extension is set to .gro
        title: Title line (defaults to the system title)

    Returns:
        Path to the written file
    """
    path = Path(path).with_suffix(".gro")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_gro(system, title))

    return path
