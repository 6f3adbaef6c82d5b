"""Asyncio building blocks for NixOS deployments: goals, limits, options,
job monitoring, Nix expressions, nix-eval-jobs evaluation and flake metadata."""

__version__ = "0.1.0"