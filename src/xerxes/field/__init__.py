"""Continuous-field layer: abstract interface and the spectral implementation."""

from xerxes.field.adapter import Field, FieldAdapter, FunctionSampler, Sampler
from xerxes.field.spectral import SpectralField, SpectralFieldAdapter, spectral_tail_error

__all__ = [
    "Field",
    "FieldAdapter",
    "FunctionSampler",
    "Sampler",
    "SpectralField",
    "SpectralFieldAdapter",
    "spectral_tail_error",
]
