[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nixhive"
version = "0.1.0"
description = "Asyncio building blocks for NixOS deployments: goals, limits, options, job monitoring, Nix expressions, nix-eval-jobs and flake metadata"
requires-python = ">=3.10"
keywords = ["nix", "nixos", "deployment", "flakes", "nix-eval-jobs", "asyncio"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]
dependencies = [
    "psutil",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["nixhive"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
