"""
ETS Engine Module for the forecastlab package

Exponential smoothing state space models (error, trend, seasonal) fitted
with statsmodels' ETSModel, automatic model selection by information
criterion, and forecasts with prediction intervals.

Functions:
    - fit_ets: Fit one ETS specification
    - select_ets: Search the ETS family and keep the best model
    - ets_spec_label: ETS(A,Ad,N)-style label for a specification
    - forecast_ets: Forecast dict with prediction intervals
"""

import warnings
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from statsmodels.tsa.exponential_smoothing.ets import ETSModel

from forecastlab.exceptions import ModelConvergenceError
from forecastlab.logger_config import get_logger
from forecastlab.preprocessing import future_index


logger = get_logger(__name__)

_LETTERS = {None: 'N', 'add': 'A', 'mul': 'M'}


def ets_spec_label(spec: Dict[str, Any]) -> str:
    """
    Label an ETS specification the way fable prints it.

    Examples:
        >>> ets_spec_label({'error': 'add', 'trend': 'add', 'damped': True, 'seasonal': None})
        'ETS(A,Ad,N)'
    """
    trend = _LETTERS[spec.get('trend')] + ('d' if spec.get('damped') else '')
    return f"ETS({_LETTERS[spec.get('error')]},{trend},{_LETTERS[spec.get('seasonal')]})"


def _model_input(series: pd.Series) -> pd.Series:
    """Values on a RangeIndex, so statsmodels forecasts by position."""
    return pd.Series(series.to_numpy(dtype=np.float64), name=series.name)


def fit_ets(
    series: pd.Series,
    error: str = 'add',
    trend: Optional[str] = None,
    damped: bool = False,
    seasonal: Optional[str] = None,
    period: Optional[int] = None,
):
    """
    Fit an ETS model with the given components.

    Args:
        series (pd.Series): Observations without missing values
        error (str): 'add' or 'mul'
        trend (str, optional): None, 'add' or 'mul'
        damped (bool): Damp the trend
        seasonal (str, optional): None, 'add' or 'mul'
        period (int, optional): Seasonal period, required when seasonal is set

    Returns:
        ETSResults: Fitted statsmodels results object

    Raises:
        ValueError: Invalid component combination or data for the specification
        ModelConvergenceError: If statsmodels fails to fit the model

    Examples:
        >>> results = fit_ets(series, error='add', trend='add')
        >>> results.aicc
    """
    spec = {'error': error, 'trend': trend, 'damped': damped, 'seasonal': seasonal}
    label = ets_spec_label(spec)

    if len(series) == 0:
        error_msg = "Series is empty"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if series.isna().any():
        error_msg = "Series contains NaN values"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if damped and trend is None:
        error_msg = f"{label}: a damped model needs a trend component"
        logger.error(error_msg)
        raise ValueError(error_msg)

    uses_multiplication = 'mul' in (error, trend, seasonal)
    if uses_multiplication and (series <= 0).any():
        error_msg = f"{label}: multiplicative components require strictly positive data"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if seasonal is not None:
        if period is None or period < 2:
            error_msg = f"{label}: seasonal models need a seasonal period >= 2, got {period}"
            logger.error(error_msg)
            raise ValueError(error_msg)
        if len(series) < 2 * period:
            error_msg = f"{label}: need at least two full cycles ({2 * period} observations)"
            logger.error(error_msg)
            raise ValueError(error_msg)

    try:
        logger.info(f"Fitting {label} on series of length {len(series)}")
        model = ETSModel(
            _model_input(series),
            error=error,
            trend=trend,
            damped_trend=damped,
            seasonal=seasonal,
            seasonal_periods=period if seasonal is not None else None,
        )
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            results = model.fit(disp=False)
    except Exception as e:
        error_msg = f"{label} failed to fit: {str(e)}"
        logger.error(error_msg)
        raise ModelConvergenceError(error_msg, model_type='ETS', parameters=spec) from e

    logger.info(f"{label} fitted. AIC: {results.aic:.4f}, AICc: {results.aicc:.4f}, BIC: {results.bic:.4f}")
    return results


def select_ets(
    series: pd.Series,
    period: Optional[int] = None,
    information_criterion: str = 'aicc',
) -> Tuple[Any, Dict[str, Any]]:
    """
    Search the ETS family and keep the model with the lowest criterion.

    Candidates: error {A, M}, trend {N, A, Ad}, seasonal {N, A, M}.
    Multiplicative components are only tried on strictly positive data,
    seasonal components only when period >= 2 and two full cycles exist.

    Args:
        series (pd.Series): Observations
        period (int, optional): Seasonal period
        information_criterion (str): 'aic', 'aicc' or 'bic'

    Returns:
        Tuple[ETSResults, dict]: Best fitted model and its specification

    Raises:
        ValueError: On unknown information criterion
        ModelConvergenceError: If no candidate could be fitted
    """
    if information_criterion not in ('aic', 'aicc', 'bic'):
        error_msg = f"information_criterion must be 'aic', 'aicc' or 'bic', got {information_criterion}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    positive = bool((series > 0).all())
    seasonal_ok = period is not None and period >= 2 and len(series) >= 2 * period

    errors = ['add', 'mul'] if positive else ['add']
    trends = [(None, False), ('add', False), ('add', True)]
    seasonals = [None]
    if seasonal_ok:
        seasonals += ['add', 'mul'] if positive else ['add']

    logger.info(
        f"Starting ETS search over {len(errors) * len(trends) * len(seasonals)} candidates "
        f"(criterion={information_criterion}, period={period})"
    )

    best_score = float('inf')
    best_results = None
    best_spec = None

    for error in errors:
        for trend, damped in trends:
            for seasonal in seasonals:
                spec = {'error': error, 'trend': trend, 'damped': damped, 'seasonal': seasonal}
                try:
                    results = fit_ets(series, error, trend, damped, seasonal, period)
                except (ValueError, ModelConvergenceError) as e:
                    logger.debug(f"{ets_spec_label(spec)} skipped: {str(e)}")
                    continue

                score = getattr(results, information_criterion)
                if not np.isfinite(score):
                    logger.debug(f"{ets_spec_label(spec)} skipped: non-finite {information_criterion}")
                    continue

                if score < best_score:
                    best_score = score
                    best_results = results
                    best_spec = spec

    if best_results is None:
        error_msg = "No ETS candidate could be fitted"
        logger.error(error_msg)
        raise ModelConvergenceError(error_msg, model_type='ETS')

    logger.info(f"Selected {ets_spec_label(best_spec)} with {information_criterion.upper()}={best_score:.4f}")
    return best_results, best_spec


def forecast_ets(
    results, series: pd.Series, horizon: int, level: int = 95,
    spec: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Forecast from a fitted ETS model.

    Args:
        results: ETSResults from fit_ets() or select_ets()
        series (pd.Series): The series the model was fitted on (for the index)
        horizon (int): Number of periods ahead
        level (int): Prediction interval coverage in percent
        spec (dict, optional): Specification used for the label

    Returns:
        dict: Common forecast dict
    """
    if not isinstance(horizon, (int, np.integer)) or horizon <= 0:
        error_msg = f"horizon must be a positive integer, got {horizon}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    n = len(series)
    alpha = 1 - level / 100.0
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        frame = results.get_prediction(start=n, end=n + horizon - 1).summary_frame(alpha=alpha)

    index = future_index(series, horizon)
    label = ets_spec_label(spec) if spec else 'ETS'
    fitted = np.asarray(results.fittedvalues, dtype=np.float64)

    forecast = {
        'model': 'ets',
        'mean': pd.Series(frame['mean'].to_numpy(), index=index, name='ets'),
        'lower': pd.Series(frame['pi_lower'].to_numpy(), index=index, name='ets_lower'),
        'upper': pd.Series(frame['pi_upper'].to_numpy(), index=index, name='ets_upper'),
        'level': level,
        'fitted': pd.Series(fitted, index=series.index, name='ets_fitted'),
        'residuals': pd.Series(series.to_numpy(dtype=np.float64) - fitted, index=series.index,
                               name='ets_residuals'),
        'params': {
            'label': label,
            'spec': spec,
            'aic': float(results.aic),
            'aicc': float(results.aicc),
            'bic': float(results.bic),
        },
    }

    logger.info(f"{label} forecast generated: {horizon} period(s)")
    return forecast
