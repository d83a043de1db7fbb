"""Risk/return statistics from a snapshot value series.

Every metric returns None, not zero, when the series is too short to say
anything: callers must be able to tell "no signal" from "flat".

Annualization uses 365 days since snapshots are calendar-daily, weekends
included.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable, Sequence, TypedDict

import numpy as np
import pandas as pd

from argfolio.config.defaults import RISK_DEFAULTS

logger = logging.getLogger(__name__)

MIN_OBSERVATIONS: int = RISK_DEFAULTS["min_observations"]
ANNUALIZATION_DAYS: int = RISK_DEFAULTS["annualization_days"]
_EPS = 1e-12


class RiskMetrics(TypedDict):
    """Result from compute_risk_metrics."""
    currency: str
    volatility: float | None     # annualized, fraction
    max_drawdown: float | None   # <= 0, fraction
    sharpe: float | None         # annualized
    n_points: int                # value observations used
    n_returns: int               # return observations
    start_date: str | None
    end_date: str | None


def compute_returns(values: Iterable[float]) -> np.ndarray:
    """Simple returns ``v_t / v_{t-1} - 1``.

    Pairs with a non-finite value or a non-positive predecessor are skipped.
    Fewer than two points yields an empty array.
    """
    arr = np.asarray(list(values), dtype=float)
    if len(arr) < 2:
        return np.array([], dtype=float)

    prev = arr[:-1]
    curr = arr[1:]
    valid = np.isfinite(prev) & np.isfinite(curr) & (prev > _EPS)
    return curr[valid] / prev[valid] - 1.0


def annualized_volatility(
    returns: Sequence[float] | np.ndarray,
    *,
    min_observations: int = MIN_OBSERVATIONS,
    annualization_days: int = ANNUALIZATION_DAYS,
) -> float | None:
    """Population std of returns times sqrt(365); None below the minimum count."""
    arr = np.asarray(returns, dtype=float)
    arr = arr[np.isfinite(arr)]
    if len(arr) < min_observations:
        return None
    return float(np.std(arr) * math.sqrt(annualization_days))


def max_drawdown(values: Iterable[float]) -> float | None:
    """``min((v - running_max) / running_max)``, clamped to [-1, 0].

    A fall to zero counts as a full loss. Points are skipped only while
    the running peak is still non-positive.
    """
    arr = np.asarray(list(values), dtype=float)
    arr = arr[np.isfinite(arr)]
    if len(arr) < 2:
        return None
    running_max = np.maximum.accumulate(arr)
    has_peak = running_max > _EPS
    if not has_peak.any():
        return 0.0
    drawdowns = (arr[has_peak] - running_max[has_peak]) / running_max[has_peak]
    return float(np.clip(drawdowns.min(), -1.0, 0.0))


def sharpe_ratio(
    returns: Sequence[float] | np.ndarray,
    *,
    risk_free_annual: float = RISK_DEFAULTS["risk_free_annual"],
    min_observations: int = MIN_OBSERVATIONS,
    annualization_days: int = ANNUALIZATION_DAYS,
) -> float | None:
    """Annualized Sharpe ratio of daily returns.

    None when observations are insufficient or the returns have zero
    dispersion.
    """
    arr = np.asarray(returns, dtype=float)
    arr = arr[np.isfinite(arr)]
    if len(arr) < min_observations:
        return None
    std = float(np.std(arr))
    if std <= _EPS:
        return None
    excess = arr - risk_free_annual / annualization_days
    return float(excess.mean() / std * math.sqrt(annualization_days))


def snapshot_value_series(snapshots: Sequence, currency: str = "ars") -> pd.Series:
    """Total value per date from snapshots; the last snapshot for a date wins."""
    currency = currency.lower()
    if currency not in ("ars", "usd"):
        raise ValueError(f"Unknown currency '{currency}', expected ars or usd")
    if not snapshots:
        return pd.Series(dtype=float)

    frame = pd.DataFrame(
        {
            "date": [pd.Timestamp(s.date_key) for s in snapshots],
            "value": [getattr(s.total, currency) for s in snapshots],
        }
    )
    frame = frame.drop_duplicates(subset="date", keep="last").sort_values("date")
    return frame.set_index("date")["value"].astype(float)


def compute_risk_metrics(
    snapshots: Sequence,
    currency: str = "ars",
    *,
    risk_free_annual: float = RISK_DEFAULTS["risk_free_annual"],
    min_observations: int = MIN_OBSERVATIONS,
    annualization_days: int = ANNUALIZATION_DAYS,
) -> RiskMetrics:
    """Volatility, max drawdown, and Sharpe for a snapshot series.

    Parameters:
        snapshots: Objects with ``date_key`` and ``total`` (a MoneyPair).
        currency: "ars" or "usd" total to measure.
    """
    series = snapshot_value_series(snapshots, currency)
    values = series.to_numpy()
    returns = compute_returns(values)

    result: RiskMetrics = {
        "currency": currency.lower(),
        "volatility": annualized_volatility(
            returns, min_observations=min_observations, annualization_days=annualization_days,
        ),
        "max_drawdown": max_drawdown(values),
        "sharpe": sharpe_ratio(
            returns,
            risk_free_annual=risk_free_annual,
            min_observations=min_observations,
            annualization_days=annualization_days,
        ),
        "n_points": int(len(values)),
        "n_returns": int(len(returns)),
        "start_date": series.index[0].date().isoformat() if len(series) else None,
        "end_date": series.index[-1].date().isoformat() if len(series) else None,
    }
    logger.debug(
        "Risk metrics (%s): %d points, %d returns", result["currency"],
        result["n_points"], result["n_returns"],
    )
    return result
