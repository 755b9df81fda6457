[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "balbundle"
version = "0.1.0"
description = "Bundle adjustment building blocks with dual-number automatic differentiation"
requires-python = ">=3.10"
keywords = ["bundle adjustment", "BAL", "autodiff", "dual numbers", "computer vision", "least squares"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["balbundle"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
