"""Intensity-dependent accuracy factors.

Low intensity peaks are measured less accurately. An intensity dependency
maps a (normalized) peak intensity to a factor that scales the standard
deviation used by a scorer.

Examples
--------
>>> dependency = LinearIntensityDependency(0.1, 1.0, 2.0)
>>> dependency.value_at(0.5), dependency.value_at(0.05)
(1.0, 1.5)
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np


class IntensityDependency:
    """Maps intensities to accuracy factors."""

    def value_at(self, intensity: float) -> float:
        return float(self.values_at(np.array([intensity], dtype=np.float64))[0])

    def values_at(self, intensities: np.ndarray) -> np.ndarray:
        raise NotImplementedError

    def __call__(self, intensity: Union[float, np.ndarray]):
        if np.ndim(intensity) == 0:
            return self.value_at(float(intensity))
        return self.values_at(np.asarray(intensity, dtype=np.float64))


class ConstantIntensityDependency(IntensityDependency):
    def __init__(self, value: float = 1.0):
        if value < 0:
            raise ValueError(f"Accuracy factor must be non-negative, got {value}")
        self.value = float(value)

    def values_at(self, intensities: np.ndarray) -> np.ndarray:
        return np.full(len(intensities), self.value, dtype=np.float64)

    def __repr__(self) -> str:
        return f"ConstantIntensityDependency({self.value})"


class PiecewiseLinearIntensityDependency(IntensityDependency):
    """Linear interpolation between (intensity, value) points.

    Parameters
    ----------
    intensities : sequence of float
        Strictly descending intensities
    values : sequence of float
        Factor at each intensity; constant beyond the first and last point
    """

    def __init__(self, intensities: Sequence[float], values: Sequence[float]):
        intensities = np.array(intensities, dtype=np.float64)
        values = np.array(values, dtype=np.float64)
        if len(intensities) == 0 or len(intensities) != len(values):
            raise ValueError("Need the same, non-zero number of intensities and values")
        if np.any(np.diff(intensities) >= 0):
            raise ValueError("Intensities must be strictly descending")
        if np.any(values < 0):
            raise ValueError("Accuracy factors must be non-negative")
        # np.interp expects ascending x
        self._x = intensities[::-1].copy()
        self._y = values[::-1].copy()

    @property
    def intensities(self) -> np.ndarray:
        return self._x[::-1]

    @property
    def values(self) -> np.ndarray:
        return self._y[::-1]

    def values_at(self, intensities: np.ndarray) -> np.ndarray:
        return np.interp(intensities, self._x, self._y)

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.intensities.tolist()}, {self.values.tolist()})"
        )


class LinearIntensityDependency(PiecewiseLinearIntensityDependency):
    """``full_intensity_accuracy`` at and above ``full_intensity``, falling
    linearly to ``lowest_intensity_accuracy`` at intensity 0."""

    def __init__(
        self,
        full_intensity: float,
        full_intensity_accuracy: float,
        lowest_intensity_accuracy: float,
    ):
        if full_intensity <= 0:
            raise ValueError(f"full_intensity must be positive, got {full_intensity}")
        super().__init__(
            (full_intensity, 0.0), (full_intensity_accuracy, lowest_intensity_accuracy)
        )
