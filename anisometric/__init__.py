"""Isotropic and anisotropic metric fields on simplex meshes: metric algebra,
complexity, gradation, smoothing and scaling."""

__version__ = "0.1.0"