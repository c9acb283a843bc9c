[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "transxform"
version = "0.1.0"
description = "Building blocks for supervising deep learning training runs: interventions, threshold discovery, phase control, regret tracking, an audit ledger, run hashing and reports"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "machine-learning",
    "transformer",
    "training",
    "supervisor",
    "invariant",
    "monitoring",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["transxform"]

[tool.hatch.build.targets.sdist]
include = ["transxform", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
