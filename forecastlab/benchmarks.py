"""
Benchmark Forecasting Methods

The four simple methods every other model has to beat: mean, naive,
seasonal naive and drift. Each returns the common forecast dict with
normal prediction intervals built from the in-sample residuals.

Functions:
    - mean_forecast
    - naive_forecast
    - seasonal_naive_forecast
    - drift_forecast
    - run_benchmarks: run a list of methods by name
"""

from typing import Any, Dict, Iterable, Optional

import numpy as np
import pandas as pd
from scipy.stats import norm

from forecastlab.logger_config import get_logger
from forecastlab.preprocessing import future_index


logger = get_logger(__name__)


def _validate(series: pd.Series, horizon: int, level: int, min_length: int = 1) -> np.ndarray:
    if not isinstance(horizon, (int, np.integer)) or horizon <= 0:
        error_msg = f"horizon must be a positive integer, got {horizon}"
        logger.error(error_msg)
        raise ValueError(error_msg)
    if not 0 < level < 100:
        error_msg = f"level must be between 0 and 100, got {level}"
        logger.error(error_msg)
        raise ValueError(error_msg)
    if len(series) < min_length:
        error_msg = f"Series needs at least {min_length} observations, got {len(series)}"
        logger.error(error_msg)
        raise ValueError(error_msg)
    if series.isna().any():
        error_msg = "Series contains NaN values"
        logger.error(error_msg)
        raise ValueError(error_msg)
    return series.to_numpy(dtype=np.float64)


def _rms(residuals: np.ndarray) -> float:
    valid = residuals[~np.isnan(residuals)]
    if len(valid) == 0:
        return np.nan
    return float(np.sqrt(np.mean(valid ** 2)))


def _build_forecast(
    name: str,
    series: pd.Series,
    point: np.ndarray,
    se: np.ndarray,
    fitted: np.ndarray,
    level: int,
    params: Dict[str, Any],
) -> Dict[str, Any]:
    index = future_index(series, len(point))
    z = norm.ppf(0.5 + level / 200.0)
    residuals = series.to_numpy(dtype=np.float64) - fitted

    return {
        'model': name,
        'mean': pd.Series(point, index=index, name=name),
        'lower': pd.Series(point - z * se, index=index, name=f"{name}_lower"),
        'upper': pd.Series(point + z * se, index=index, name=f"{name}_upper"),
        'level': level,
        'fitted': pd.Series(fitted, index=series.index, name=f"{name}_fitted"),
        'residuals': pd.Series(residuals, index=series.index, name=f"{name}_residuals"),
        'params': params,
    }


def mean_forecast(series: pd.Series, horizon: int, level: int = 95) -> Dict[str, Any]:
    """
    Forecast every future value as the historical mean.

    Interval standard error: sigma * sqrt(1 + 1/T).
    """
    y = _validate(series, horizon, level, min_length=2)
    T = len(y)
    mean = float(np.mean(y))
    sigma = float(np.std(y, ddof=1))

    point = np.full(horizon, mean)
    se = np.full(horizon, sigma * np.sqrt(1 + 1 / T))
    fitted = np.full(T, mean)

    logger.info(f"Mean forecast: {mean:.6f} for {horizon} period(s)")
    return _build_forecast('mean', series, point, se, fitted, level, {'mean': mean, 'sigma': sigma})


def naive_forecast(series: pd.Series, horizon: int, level: int = 95) -> Dict[str, Any]:
    """
    Forecast every future value as the last observation.

    Interval standard error: sigma * sqrt(h).
    """
    y = _validate(series, horizon, level, min_length=2)
    fitted = np.concatenate([[np.nan], y[:-1]])
    sigma = _rms(y - fitted)

    h = np.arange(1, horizon + 1)
    point = np.full(horizon, y[-1])
    se = sigma * np.sqrt(h)

    logger.info(f"Naive forecast: {y[-1]:.6f} for {horizon} period(s)")
    return _build_forecast('naive', series, point, se, fitted, level, {'last': float(y[-1]), 'sigma': sigma})


def seasonal_naive_forecast(
    series: pd.Series, horizon: int, period: int, level: int = 95
) -> Dict[str, Any]:
    """
    Forecast each value as the observation from the same season of the last cycle.

    y_hat_{T+h} = y_{T+h-m(k+1)} with k = floor((h-1)/m).
    Interval standard error: sigma * sqrt(k + 1). A series of exactly one
    cycle has no in-sample residuals, so its bounds are NaN.
    """
    if not isinstance(period, (int, np.integer)) or period < 1:
        error_msg = f"period must be a positive integer, got {period}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    y = _validate(series, horizon, level, min_length=period)
    T = len(y)
    fitted = np.concatenate([np.full(period, np.nan), y[:-period]])
    sigma = _rms(y - fitted)

    h = np.arange(1, horizon + 1)
    k = (h - 1) // period
    point = y[T + h - period * (k + 1) - 1]
    se = sigma * np.sqrt(k + 1)

    logger.info(f"Seasonal naive forecast with period {period} for {horizon} period(s)")
    return _build_forecast('snaive', series, point, se, fitted, level, {'period': int(period), 'sigma': sigma})


def drift_forecast(series: pd.Series, horizon: int, level: int = 95) -> Dict[str, Any]:
    """
    Extend the line between the first and last observations.

    y_hat_{T+h} = y_T + h * (y_T - y_1) / (T - 1)
    Interval standard error: sigma * sqrt(h * (1 + h / (T - 1))).
    """
    y = _validate(series, horizon, level, min_length=3)
    T = len(y)
    slope = (y[-1] - y[0]) / (T - 1)
    fitted = np.concatenate([[np.nan], y[:-1] + slope])
    sigma = _rms(y - fitted)

    h = np.arange(1, horizon + 1)
    point = y[-1] + h * slope
    se = sigma * np.sqrt(h * (1 + h / (T - 1)))

    logger.info(f"Drift forecast: slope={slope:.6f} for {horizon} period(s)")
    return _build_forecast('drift', series, point, se, fitted, level, {'slope': float(slope), 'sigma': sigma})


def run_benchmarks(
    series: pd.Series,
    horizon: int,
    methods: Iterable[str] = ('mean', 'naive', 'snaive', 'drift'),
    period: Optional[int] = None,
    level: int = 95,
) -> Dict[str, Dict[str, Any]]:
    """
    Run several benchmark methods by name.

    'snaive' is skipped with a warning when no seasonal period >= 2 is known.

    Raises:
        ValueError: On an unknown method name
    """
    results = {}
    for method in methods:
        if method == 'mean':
            results[method] = mean_forecast(series, horizon, level)
        elif method == 'naive':
            results[method] = naive_forecast(series, horizon, level)
        elif method == 'snaive':
            if period is None or period < 2:
                logger.warning("Skipping seasonal naive forecast: no seasonal period >= 2")
                continue
            results[method] = seasonal_naive_forecast(series, horizon, period, level)
        elif method == 'drift':
            results[method] = drift_forecast(series, horizon, level)
        else:
            error_msg = f"Unknown benchmark method '{method}'"
            logger.error(error_msg)
            raise ValueError(error_msg)
    return results
