from __future__ import annotations

import math
from typing import Callable

TokenEstimator = Callable[[str], int]


def estimate_tokens(text: str) -> int:
    # Heuristic: ~4 chars/token, rounded up.
    return int(math.ceil(len(text or "") / 4))
