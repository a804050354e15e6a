from __future__ import annotations

from typing import Any, Mapping

REQUIRED_FIELDS = ("basicSalary", "totalPayment", "netPayment", "paymentDate")


def score_confidence(data: Mapping[str, Any]) -> float:
    """Fraction of the minimum usable fields that were recovered (0.0-1.0)."""
    present = [key for key in REQUIRED_FIELDS if data.get(key) is not None]
    return len(present) / len(REQUIRED_FIELDS)
