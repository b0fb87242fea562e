"""Parcel geometry aggregation and viewport caching for parcel-assembly maps."""

from parcel_assembly.engine import ParcelAssemblyEngine

__all__ = ["ParcelAssemblyEngine"]
