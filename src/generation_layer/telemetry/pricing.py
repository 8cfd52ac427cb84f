"""
Cost computation from the supported-models price table.

Table shape (resources/supported_models.json):

    {
        "<provider>": [
            {"id": "<model id>", "cost_per_1m_tokens": {"input": 0.15, "output": 0.6, "currency": "USD"}}
        ]
    }
"""

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, NamedTuple, Optional

import structlog

from generation_layer.resources import SUPPORTED_MODELS_PATH

logger = structlog.get_logger(__name__)


class ModelCost(NamedTuple):
    input_per_1m: float
    output_per_1m: float
    currency: str


ZERO_COST = ModelCost(0.0, 0.0, "USD")


@lru_cache(maxsize=4)
def load_price_table(path: Optional[Path] = None) -> dict[str, list[dict[str, Any]]]:
    with open(path or SUPPORTED_MODELS_PATH, "r", encoding="utf-8") as f:
        return json.load(f)


def get_model_cost(
    provider: str,
    model_id: str,
    table: Optional[dict[str, list[dict[str, Any]]]] = None,
) -> ModelCost:
    """Per-1M-token prices for a model; zero cost when unknown."""
    table = load_price_table() if table is None else table
    for entry in table.get(provider.lower(), []):
        if entry.get("id") == model_id:
            cost = entry.get("cost_per_1m_tokens") or {}
            return ModelCost(
                float(cost.get("input") or 0.0),
                float(cost.get("output") or 0.0),
                cost.get("currency") or "USD",
            )

    logger.debug("No price data for model, assuming zero cost", provider=provider, model=model_id)
    return ZERO_COST


def compute_cost(
    provider: str,
    model_id: str,
    input_tokens: int,
    output_tokens: int,
    table: Optional[dict[str, list[dict[str, Any]]]] = None,
) -> tuple[float, str]:
    """
    Total cost of one call.

    Returns:
        (total_cost rounded to 6 decimals, currency)
    """
    cost = get_model_cost(provider, model_id, table)
    total = (input_tokens / 1_000_000) * cost.input_per_1m + (output_tokens / 1_000_000) * cost.output_per_1m
    return round(total, 6), cost.currency
