[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "anisometric"
version = "0.1.0"
description = "Isotropic and anisotropic Riemannian metric fields on simplex meshes: intersection, gradation, smoothing, complexity and scaling"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["mesh", "metric", "anisotropic", "mesh adaptation", "simplex", "gradation"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["anisometric"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
