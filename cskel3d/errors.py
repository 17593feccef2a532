"""Винятки cskel3d. Бібліотека їх кидає, CLI перетворює на код виходу."""
from __future__ import annotations
from typing import Iterable, List, Tuple


class SkeletonError(Exception):
    """Базовий виняток пакета."""


class DegenerateInput(SkeletonError, ValueError):
    """Менше ніж 4 афінно-незалежні точки."""


class DuplicatePoint(DegenerateInput):
    def __init__(self, i: int, j: int, tol: float):
        super().__init__(f"points {i} and {j} coincide (tolerance {tol:g})")
        self.indices = (i, j)
        self.tol = tol


class NonManifoldSurface(SkeletonError):
    def __init__(self, message: str, edges: Iterable[Tuple[int, int]] = ()):
        self.edges: List[Tuple[int, int]] = list(edges)
        if self.edges:
            shown = ", ".join(f"{u}-{v}" for u, v in self.edges[:5])
            more = "" if len(self.edges) <= 5 else f" (+{len(self.edges) - 5})"
            message = f"{message}: {shown}{more}"
        super().__init__(message)


class InvalidParameter(SkeletonError, ValueError):
    """Параметр поза допустимим діапазоном (epsilon < 0 тощо)."""


class MeshFormatError(SkeletonError, ValueError):
    def __init__(self, path: str, lineno: int, message: str):
        super().__init__(f"{path}:{lineno}: {message}")
        self.path = path
        self.lineno = lineno
