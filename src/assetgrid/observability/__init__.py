"""Observability helpers for the asset grid service."""

from assetgrid.observability.metrics import metrics, timed

__all__ = ["metrics", "timed"]
