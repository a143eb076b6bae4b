[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ffbank"
version = "0.1.0"
description = "Analysis of multi-bit flip-flop banking results: design parsing, timing paths, placement rows and overlap checking"
requires-python = ">=3.10"
dependencies = []
keywords = ["eda", "placement", "flip-flop", "banking", "timing", "legalization"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Electronic Design Automation (EDA)",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
ffbank-analyze = "ffbank.cli:main"
ffbank-check-overlap = "ffbank.overlap:main"

[tool.hatch.build.targets.wheel]
packages = ["ffbank"]

[tool.pytest.ini_options]
addopts = "-ra"
