"""Composite architectures assembled from resource declarations."""
