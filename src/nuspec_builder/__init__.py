"""Generate nuspec manifests for dependency bundles and pack them sequentially."""

__version__ = "0.1.0"
