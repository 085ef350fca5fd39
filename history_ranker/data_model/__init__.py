"""Shared data model primitives."""

from history_ranker.data_model.base import StrictBaseModel, ensure_aware


__all__ = ["StrictBaseModel", "ensure_aware"]
