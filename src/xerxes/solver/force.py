"""Force field builder: directional derivatives of the potential."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np

from xerxes.field.adapter import Field, FieldAdapter


@dataclass(frozen=True)
class ForceField:
    """Raw gradient of the potential, one field per axis.

    No sign convention is applied: the integrator adds these derivatives to
    the particle velocities directly.
    """

    x: Field
    y: Field
    z: Field

    def __getitem__(self, axis: int) -> Field:
        return (self.x, self.y, self.z)[axis]

    def __iter__(self):
        return iter((self.x, self.y, self.z))

    def evaluate_many(self, points: np.ndarray) -> np.ndarray:
        """Evaluate all three components at ``points`` (shape ``(P, 3)``).

        Returns:
            Array of shape ``(P, 3)``.
        """
        pts = np.atleast_2d(np.asarray(points, dtype=np.float64))
        if pts.shape[0] == 0:
            return np.zeros((0, 3))
        return np.stack([component.evaluate_many(pts) for component in self], axis=1)


def compute_gradient(adapter: FieldAdapter, potential: Field) -> ForceField:
    """Differentiate the potential along the three coordinate axes."""
    return ForceField(
        x=adapter.differentiate(potential, 0),
        y=adapter.differentiate(potential, 1),
        z=adapter.differentiate(potential, 2),
    )
