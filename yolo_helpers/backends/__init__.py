"""
Optional inference backends for yolo_helpers.

Backends live in a separate package so the decoders can be used without
installing an inference runtime. Every backend returns all model outputs as
NumPy arrays, in the model's output order.
"""

from __future__ import annotations

__all__ = []
