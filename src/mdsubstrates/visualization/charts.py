"""
Preview charts of built systems.
"""
import numpy as np
import matplotlib.pyplot as plt
import matplotlib
from pathlib import Path

from mdsubstrates.models import System

matplotlib.use('Agg')
plt.rcParams['font.family'] = 'DejaVu Sans'
plt.rcParams['font.size'] = 11

ELEMENT_COLORS = {
    "C": "#404040",
    "O": "#e74c3c",
    "Si": "#f1c40f",
    "N": "#3498db",
    "H": "#ecf0f1",
}


def plot_system_preview(system: System, output_path: Path) -> Path:
    """
    Save a top view (x-y) and a side view (x-z) of a system.

    Atoms are coloured by element; overlapping pairs are marked in red.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    fig, (ax_top, ax_side) = plt.subplots(
        1, 2, figsize=(14, 6), gridspec_kw={'width_ratios': [1, 1.4]}
    )

    positions = system.positions
    for element in np.unique(system.elements):
        mask = system.elements == element
        color = ELEMENT_COLORS.get(str(element), '#9b59b6')
        ax_top.scatter(positions[mask, 0], positions[mask, 1], s=6,
                       color=color, label=str(element))
        ax_side.scatter(positions[mask, 0], positions[mask, 2], s=6, color=color)

    if system.overlaps:
        flagged = np.unique([[o.atom_a, o.atom_b] for o in system.overlaps]) - 1
        ax_top.scatter(positions[flagged, 0], positions[flagged, 1], s=30,
                       facecolors='none', edgecolors='red', linewidth=1.0,
                       label='overlap')

    (xlo, xhi), (ylo, yhi), (zlo, zhi) = system.box_bounds
    ax_top.add_patch(plt.Rectangle((xlo, ylo), xhi - xlo, yhi - ylo,
                                   fill=False, edgecolor='#7f8c8d', linestyle='--'))
    ax_side.add_patch(plt.Rectangle((xlo, zlo), xhi - xlo, zhi - zlo,
                                    fill=False, edgecolor='#7f8c8d', linestyle='--'))

    ax_top.set_aspect('equal')
    ax_top.set_xlabel('x (nm)')
    ax_top.set_ylabel('y (nm)')
    ax_top.set_title('Top view', fontweight='bold')
    ax_top.legend(loc='upper right', fontsize=9)

    ax_side.set_xlabel('x (nm)')
    ax_side.set_ylabel('z (nm)')
    ax_side.set_title('Side view', fontweight='bold')

    for ax in (ax_top, ax_side):
        for spine in ['top', 'right']:
            ax.spines[spine].set_visible(False)

    plt.suptitle(system.describe(), fontsize=12, fontweight='bold')
    plt.savefig(output_path, dpi=200, bbox_inches='tight', facecolor='white')
    plt.close(fig)

    return output_path
