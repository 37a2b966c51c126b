"""
Decomposition Module for the forecastlab package

Splits a series into trend, seasonal and remainder components with
statsmodels (STL or classical moving-average decomposition) and measures how
strong each component is.

Functions:
    - decompose_series: STL or classical decomposition into a component frame
    - feature_strength: Trend and seasonal strength in [0, 1]
"""

from typing import Dict, Optional

import numpy as np
import pandas as pd
from statsmodels.tsa.seasonal import STL, seasonal_decompose

from forecastlab.logger_config import get_logger
from forecastlab.preprocessing import infer_seasonal_period


logger = get_logger(__name__)


def decompose_series(
    series: pd.Series,
    period: Optional[int] = None,
    method: str = 'stl',
    model: str = 'additive',
) -> pd.DataFrame:
    """
    Decompose a series into trend, seasonal and remainder components.

    Args:
        series (pd.Series): Observations without missing values
        period (int, optional): Seasonal period; inferred from the index when None
        method (str): 'stl' (robust STL) or 'classical' (moving averages)
        model (str): 'additive' or 'multiplicative', classical method only

    Returns:
        pd.DataFrame: Columns observed, trend, seasonal, remainder on the input index.
            The classical trend is NaN for the first and last period/2 observations.

    Raises:
        ValueError: On unknown method/model, NaN input, period < 2, fewer than
                    two full cycles, or non-positive data for a multiplicative model
    """
    if method not in ('stl', 'classical'):
        error_msg = f"Unknown decomposition method '{method}'. Use 'stl' or 'classical'"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if model not in ('additive', 'multiplicative'):
        error_msg = f"Unknown decomposition model '{model}'. Use 'additive' or 'multiplicative'"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if series.isna().any():
        error_msg = "Series contains NaN values"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if period is None:
        period = infer_seasonal_period(series)

    if period < 2:
        error_msg = f"Seasonal period must be at least 2 for decomposition, got {period}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if len(series) < 2 * period:
        error_msg = (
            f"Decomposition needs at least two full cycles ({2 * period} observations), "
            f"got {len(series)}"
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    values = pd.Series(series.to_numpy(dtype=np.float64))
    logger.info(
        f"Decomposing series of length {len(series)} with method={method}, period={period}"
    )

    if method == 'stl':
        if model == 'multiplicative':
            logger.warning("STL is additive; ignoring model='multiplicative'")
        result = STL(values, period=period, robust=True).fit()
    else:
        if model == 'multiplicative' and (values <= 0).any():
            error_msg = "Multiplicative decomposition requires strictly positive data"
            logger.error(error_msg)
            raise ValueError(error_msg)
        result = seasonal_decompose(values, model=model, period=period)

    components = pd.DataFrame(
        {
            'observed': series.to_numpy(dtype=np.float64),
            'trend': np.asarray(result.trend, dtype=np.float64),
            'seasonal': np.asarray(result.seasonal, dtype=np.float64),
            'remainder': np.asarray(result.resid, dtype=np.float64),
        },
        index=series.index,
    )
    components.attrs['period'] = period
    components.attrs['model'] = 'additive' if method == 'stl' else model

    logger.info("Decomposition completed")
    return components


def feature_strength(components: pd.DataFrame) -> Dict[str, float]:
    """
    Strength of trend and seasonality of a decomposition.

    F_T = max(0, 1 - Var(R) / Var(T + R))
    F_S = max(0, 1 - Var(R) / Var(S + R))

    Multiplicative components are measured on the log scale, where they
    become additive. Rows with NaN (classical trend edges) are dropped.

    Examples:
        >>> strengths = feature_strength(decompose_series(series, period=12))
        >>> 0.0 <= strengths['seasonal_strength'] <= 1.0
        True
    """
    frame = components[['trend', 'seasonal', 'remainder']].dropna()
    if components.attrs.get('model') == 'multiplicative':
        frame = np.log(frame)

    if len(frame) < 2:
        logger.warning("Not enough complete rows to measure feature strength")
        return {'trend_strength': 0.0, 'seasonal_strength': 0.0}

    remainder_var = float(np.var(frame['remainder'], ddof=1))

    def _strength(component: pd.Series) -> float:
        denominator = float(np.var(component + frame['remainder'], ddof=1))
        if denominator <= 0:
            return 0.0
        return max(0.0, 1.0 - remainder_var / denominator)

    strengths = {
        'trend_strength': _strength(frame['trend']),
        'seasonal_strength': _strength(frame['seasonal']),
    }
    logger.info(
        f"Feature strength: trend={strengths['trend_strength']:.4f}, "
        f"seasonal={strengths['seasonal_strength']:.4f}"
    )
    return strengths
