"""Shared fixtures: a miniature valuation workbook snapshot.

Earth column O is the base scenario and column Y the optimistic one; money
is stored in raw dollars like the real import step does.
"""

from __future__ import annotations

from typing import Any

import pytest

from orbitval import Snapshot, SnapshotEvaluator

B = 1e9

# Tax rate split across two driver rows, chosen so taxes land on 13.33B
_TAX_RATE_A = 0.05
_TAX_RATE_B = 13.33 / 148.13 - _TAX_RATE_A


def _earth_column(col: str, revenue: tuple[float, float, float], costs: tuple[float, float]) -> dict[str, Any]:
    return {
        f"{col}116": revenue[0],
        f"{col}117": revenue[1],
        f"{col}118": revenue[2],
        f"{col}119": f"=SUM({col}116:{col}118)",
        f"{col}142": costs[0],
        f"{col}143": costs[1],
        f"{col}144": f"=SUM({col}142:{col}143)",
        f"{col}146": _TAX_RATE_A,
        f"{col}150": _TAX_RATE_B,
        f"{col}151": f"={col}146+{col}150",
        f"{col}152": f"={col}151*{col}119",
        f"{col}154": f"={col}119-{col}144",
        f"{col}153": f"={col}154-{col}152",
    }


def valuation_data() -> dict[str, Any]:
    earth = {}
    earth.update(_earth_column("O", (100 * B, 40 * B, 8.13 * B), (6 * B, 4.32 * B)))
    # Optimistic: revenue x3.38, costs x0.30
    earth.update(
        _earth_column(
            "Y",
            (100 * 3.38 * B, 40 * 3.38 * B, 8.13 * 3.38 * B),
            (6 * 0.30 * B, 4.32 * 0.30 * B),
        )
    )
    return {
        "Earth": {"cells": {ref: _cell(v) for ref, v in earth.items()}},
        "Mars": {
            "cells": {
                "K8": {"value": 2.0 * B},
                "K27": {"value": 1.5 * B},
                "K54": {"value": 0.745 * B},
                "U54": {"value": 924.0 * B},
            }
        },
        "Summary": {
            "cells": {
                "B1": {"formula": "=Earth!O153"},
                "B2": {"formula": "=Mars!K54"},
                "B3": {"formula": "=B1+B2"},
                "B4": {"formula": "=INDEX(Earth!O116:O118,2)"},
                "B5": {"formula": "=O1*2+1"},
            }
        },
    }


def _cell(value: Any) -> dict[str, Any]:
    if isinstance(value, str) and value.startswith("="):
        return {"formula": value}
    return {"value": value}


@pytest.fixture()
def valuation_snapshot() -> Snapshot:
    return Snapshot.from_dict(valuation_data())


@pytest.fixture()
def evaluator(valuation_snapshot: Snapshot) -> SnapshotEvaluator:
    return SnapshotEvaluator(valuation_snapshot)


@pytest.fixture()
def valuation_dict() -> dict[str, Any]:
    """Fresh raw snapshot dict, safe to mutate."""
    return valuation_data()
