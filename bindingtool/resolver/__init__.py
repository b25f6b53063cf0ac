"""Recursive buildpack dependency resolution."""

from bindingtool.resolver.graph import BuildpackGraph, BuildpackNode
from bindingtool.resolver.resolver import (
    DependencyResolver,
    ResolutionError,
    ResolutionSet,
)

__all__ = [
    "BuildpackGraph",
    "BuildpackNode",
    "DependencyResolver",
    "ResolutionError",
    "ResolutionSet",
]
