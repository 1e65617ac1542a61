from __future__ import annotations

import math

from rag_chat.domain.errors import DimensionMismatchError
from rag_chat.domain.models import Vector


def cosine_similarity(a: Vector, b: Vector) -> float:
    """
    dot(a, b) / (|a| * |b|), результат в [-1, 1].
    Векторы обязаны быть одной ненулевой длины. Если у одного из них нулевая норма,
    возвращаем 0.0 (не NaN).
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))
    if len(a) == 0:
        raise DimensionMismatchError(0)

    dot = 0.0
    mag_a = 0.0
    mag_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        mag_a += x * x
        mag_b += y * y

    if mag_a <= 0.0 or mag_b <= 0.0:
        return 0.0

    score = dot / (math.sqrt(mag_a) * math.sqrt(mag_b))
    return max(-1.0, min(1.0, score))
