"""Field export to VTK XML structured-grid (``.vts``) files.

A scalar field is sampled on a ``npoints^3`` tensor lattice spanning the
given bounds and written as ASCII point data that ParaView can open
directly. Export is a diagnostic sink; nothing reads these files back.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

from xerxes.field.adapter import Field

logger = logging.getLogger(__name__)


def _format_block(values: np.ndarray, per_line: int = 6) -> str:
    flat = np.asarray(values, dtype=np.float64).ravel()
    lines = []
    for start in range(0, flat.size, per_line):
        lines.append(" ".join(f"{v:.9e}" for v in flat[start:start + per_line]))
    return "\n".join(lines)


def write_field_vts(
    field: Field,
    label: str,
    filename: str | Path,
    lo: float | tuple[float, float, float],
    hi: float | tuple[float, float, float],
    npoints: int | tuple[int, int, int],
) -> Path:
    """Sample ``field`` on a lattice and write it as a ``.vts`` file.

    Args:
        field: Scalar field to export.
        label: Name of the point-data array.
        filename: Output path; parent directories are created.
        lo: Lower bounds (scalar for all axes, or per axis).
        hi: Upper bounds (scalar for all axes, or per axis).
        npoints: Samples per axis (scalar or per axis), each >= 2.

    Returns:
        Path of the written file.
    """
    lo3 = np.broadcast_to(np.asarray(lo, dtype=np.float64), (3,))
    hi3 = np.broadcast_to(np.asarray(hi, dtype=np.float64), (3,))
    n3 = np.broadcast_to(np.asarray(npoints, dtype=np.int64), (3,))
    if np.any(n3 < 2):
        raise ValueError(f"need at least 2 samples per axis, got {n3.tolist()}")

    xs, ys, zs = (np.linspace(lo3[a], hi3[a], int(n3[a])) for a in range(3))
    values = field.evaluate_lattice(xs, ys, zs)

    # VTK point ordering: x varies fastest
    X, Y, Z = np.meshgrid(xs, ys, zs, indexing="ij")
    points = np.stack(
        [X.transpose(2, 1, 0).ravel(), Y.transpose(2, 1, 0).ravel(), Z.transpose(2, 1, 0).ravel()],
        axis=1,
    )
    data = values.transpose(2, 1, 0).ravel()

    extent = f"0 {n3[0] - 1} 0 {n3[1] - 1} 0 {n3[2] - 1}"
    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        f.write('<?xml version="1.0"?>\n')
        f.write('<VTKFile type="StructuredGrid" version="0.1" byte_order="LittleEndian">\n')
        f.write(f'  <StructuredGrid WholeExtent="{extent}">\n')
        f.write(f'    <Piece Extent="{extent}">\n')
        f.write(f'      <PointData Scalars="{label}">\n')
        f.write(f'        <DataArray type="Float64" Name="{label}" format="ascii">\n')
        f.write(_format_block(data))
        f.write("\n        </DataArray>\n")
        f.write("      </PointData>\n")
        f.write("      <Points>\n")
        f.write('        <DataArray type="Float64" NumberOfComponents="3" format="ascii">\n')
        f.write(_format_block(points, per_line=3))
        f.write("\n        </DataArray>\n")
        f.write("      </Points>\n")
        f.write("    </Piece>\n")
        f.write("  </StructuredGrid>\n")
        f.write("</VTKFile>\n")

    logger.info("Wrote %s field (%dx%dx%d) to %s", label, *n3.tolist(), path)
    return path
