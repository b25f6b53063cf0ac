"""
binding-tool: Kubernetes service bindings for Cloud Native Buildpacks.

Resolves buildpack dependencies, downloads them with checksum verification,
and materializes them as content-addressed `dependency-mapping` bindings.
"""

__version__ = "1.22.1"
__all__ = ["__version__"]
