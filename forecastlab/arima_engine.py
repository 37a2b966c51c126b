"""
ARIMA Engine Module for the forecastlab package

Stationarity testing, differencing selection, order search, model fitting,
residual diagnostics and forecasting for (seasonal) ARIMA models, all on top
of statsmodels.

Functions:
    - check_stationarity: Augmented Dickey-Fuller (ADF) test
    - select_differencing: Number of first differences needed for stationarity
    - select_seasonal_differencing: Seasonal differences from seasonal strength
    - find_optimal_params: Order search minimising an information criterion
    - fit_arima: Fit ARIMA with the given (p, d, q)(P, D, Q, m)
    - extract_residuals: Residuals as actual - fitted values
    - ljung_box_test: Portmanteau test for residual autocorrelation
    - forecast_arima: Forecast dict with prediction intervals
"""

import warnings
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.tsa.arima.model import ARIMA
from statsmodels.tsa.stattools import adfuller

from forecastlab.decomposition import decompose_series, feature_strength
from forecastlab.logger_config import get_logger
from forecastlab.preprocessing import future_index


logger = get_logger(__name__)

DEFAULT_ORDER = (1, 1, 1)
NO_SEASONAL_ORDER = (0, 0, 0, 0)

# Seasonal strength above which one seasonal difference is taken.
SEASONAL_STRENGTH_THRESHOLD = 0.64


def _model_input(series: pd.Series) -> pd.Series:
    return pd.Series(series.to_numpy(dtype=np.float64), name=series.name)


def check_stationarity(series: pd.Series, significance: float = 0.05) -> Tuple[bool, float]:
    """
    Perform the Augmented Dickey-Fuller (ADF) test on a time series.

    H0: the series has a unit root (non-stationary). The series is declared
    stationary when the p-value is below `significance`.

    Args:
        series (pd.Series): Input time series
        significance (float): Test size, default 0.05

    Returns:
        Tuple[bool, float]: (is_stationary, p_value)

    Raises:
        ValueError: If the series is empty or contains NaN values

    Examples:
        >>> is_stat, p_val = check_stationarity(pd.Series(np.random.randn(200)))
    """
    if len(series) == 0:
        error_msg = "Series is empty"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if series.isna().any():
        error_msg = "Series contains NaN values"
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info(f"Performing ADF test on series of length {len(series)}")

    try:
        adf_result = adfuller(series.to_numpy(dtype=np.float64), autolag="AIC")
    except Exception as e:
        logger.error(f"ADF test failed: {str(e)}")
        raise

    p_value = float(adf_result[1])
    is_stationary = p_value < significance

    logger.info(
        f"ADF Test Results - Test Statistic: {adf_result[0]:.6f}, "
        f"p-value: {p_value:.6f}, Stationary: {is_stationary}"
    )
    return is_stationary, p_value


def select_differencing(series: pd.Series, max_d: int = 2) -> int:
    """
    Difference the series until the ADF test declares it stationary.

    Returns the number of differences taken, at most max_d (capped at 2).
    Constant series (ADF undefined) count as stationary.
    """
    if max_d > 2:
        logger.warning(f"max_d={max_d} exceeds recommended limit of 2. Setting to 2 for stability.")
        max_d = 2

    current = series.astype(np.float64)
    for d in range(max_d + 1):
        if current.nunique() <= 1:
            logger.info(f"Series constant after {d} difference(s)")
            return d
        try:
            is_stationary, _ = check_stationarity(current)
        except Exception as e:
            logger.warning(f"ADF test unavailable after {d} difference(s): {str(e)}")
            return d
        if is_stationary or d == max_d:
            logger.info(f"Selected differencing order d={d}")
            return d
        current = current.diff().dropna()
    return max_d


def select_seasonal_differencing(series: pd.Series, period: int, max_D: int = 1) -> int:
    """
    One seasonal difference when the STL seasonal strength exceeds 0.64, else none.
    """
    if max_D <= 0 or period is None or period < 2 or len(series) < 2 * period:
        return 0

    try:
        strength = feature_strength(decompose_series(series, period=period, method='stl'))
    except ValueError as e:
        logger.warning(f"Seasonal strength unavailable: {str(e)}")
        return 0

    D = 1 if strength['seasonal_strength'] > SEASONAL_STRENGTH_THRESHOLD else 0
    logger.info(
        f"Seasonal strength {strength['seasonal_strength']:.4f}, selected seasonal differencing D={D}"
    )
    return D


def find_optimal_params(
    series: pd.Series,
    max_p: int = 3,
    max_d: int = 2,
    max_q: int = 3,
    information_criterion: str = 'aic',
    seasonal: bool = False,
    period: Optional[int] = None,
    max_P: int = 1,
    max_D: int = 1,
    max_Q: int = 1,
) -> Tuple[Tuple[int, int, int], Tuple[int, int, int, int]]:
    """
    Find ARIMA orders minimising an information criterion.

    Differencing orders are chosen first (d by repeated ADF tests, D by
    seasonal strength) because information criteria are not comparable across
    differencing orders; p, q (and P, Q when seasonal) are then searched
    exhaustively. Fits that fail are skipped.

    Args:
        series (pd.Series): Input time series
        max_p, max_d, max_q (int): Non-seasonal bounds (max_d capped at 2)
        information_criterion (str): 'aic', 'aicc' or 'bic'
        seasonal (bool): Also search seasonal orders
        period (int, optional): Seasonal period m (>= 2) for seasonal search
        max_P, max_D, max_Q (int): Seasonal bounds

    Returns:
        Tuple[(p, d, q), (P, D, Q, m)]: Best orders. If nothing converges,
            ((1, 1, 1), (0, 0, 0, 0)) is returned with a warning.

    Raises:
        ValueError: If series is empty, bounds negative or criterion unknown

    Examples:
        >>> order, seasonal_order = find_optimal_params(returns, max_p=2, max_q=2)
    """
    if len(series) == 0:
        error_msg = "Series is empty"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if min(max_p, max_d, max_q, max_P, max_D, max_Q) < 0:
        error_msg = "ARIMA search bounds must be non-negative"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if information_criterion not in ('aic', 'aicc', 'bic'):
        error_msg = f"information_criterion must be 'aic', 'aicc' or 'bic', got {information_criterion}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    seasonal = bool(seasonal and period is not None and period >= 2)

    d = select_differencing(series, max_d)
    D = select_seasonal_differencing(series, period, max_D) if seasonal else 0
    seasonal_grid = (
        [(P, Q) for P in range(max_P + 1) for Q in range(max_Q + 1)] if seasonal else [(0, 0)]
    )

    logger.info(
        f"Starting ARIMA search. Max P: {max_p}, d: {d}, Max Q: {max_q}, "
        f"seasonal: {seasonal} (D={D}, m={period}), criterion: {information_criterion}, "
        f"series length: {len(series)}"
    )

    y = _model_input(series)
    best_score = float("inf")
    best = None

    for p in range(max_p + 1):
        for q in range(max_q + 1):
            for P, Q in seasonal_grid:
                order = (p, d, q)
                seasonal_order = (P, D, Q, period) if seasonal else NO_SEASONAL_ORDER
                try:
                    with warnings.catch_warnings():
                        warnings.simplefilter('ignore')
                        results = ARIMA(y, order=order, seasonal_order=seasonal_order).fit()
                    score = getattr(results, information_criterion)
                except Exception as e:
                    logger.debug(f"Order {order}{seasonal_order} failed to converge: {str(e)}")
                    continue

                logger.debug(f"Order {order}{seasonal_order}: {information_criterion.upper()} = {score:.4f}")
                if np.isfinite(score) and score < best_score:
                    best_score = score
                    best = (order, seasonal_order)

    if best is None:
        logger.warning(f"No ARIMA order converged. Returning default order {DEFAULT_ORDER}")
        return DEFAULT_ORDER, NO_SEASONAL_ORDER

    logger.info(f"Optimal ARIMA order found: {best[0]}{best[1]} with {information_criterion.upper()}: {best_score:.4f}")
    return best


def fit_arima(
    series: pd.Series,
    order: Tuple[int, int, int],
    seasonal_order: Optional[Tuple[int, int, int, int]] = None,
):
    """
    Fit an ARIMA model with the specified orders.

    Args:
        series (pd.Series): Input time series
        order (Tuple[int, int, int]): (p, d, q)
        seasonal_order (Tuple[int, int, int, int], optional): (P, D, Q, m)

    Returns:
        ARIMAResults: Fitted statsmodels results object

    Raises:
        ValueError: If series is empty or orders are negative
        Exception: If statsmodels fails to fit the model

    Examples:
        >>> model = fit_arima(returns, order=(1, 0, 1))
        >>> forecast = model.get_forecast(steps=10)
    """
    if len(series) == 0:
        error_msg = "Series is empty"
        logger.error(error_msg)
        raise ValueError(error_msg)

    seasonal_order = tuple(seasonal_order) if seasonal_order is not None else NO_SEASONAL_ORDER
    if any(v < 0 for v in tuple(order) + seasonal_order):
        error_msg = f"Invalid ARIMA order: {order}{seasonal_order}. All parameters must be non-negative"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if order[1] > 2:
        logger.warning(f"Differencing order d={order[1]} exceeds recommended limit of 2")

    try:
        logger.info(f"Fitting ARIMA{tuple(order)}{seasonal_order} on series of length {len(series)}")
        with warnings.catch_warnings():
            warnings.simplefilter('ignore')
            results = ARIMA(_model_input(series), order=tuple(order), seasonal_order=seasonal_order).fit()
    except Exception as e:
        logger.error(f"ARIMA model fitting failed with order {order}{seasonal_order}: {str(e)}")
        raise

    logger.info(f"ARIMA model fitted successfully. AIC: {results.aic:.4f}, BIC: {results.bic:.4f}")
    return results


def extract_residuals(series: pd.Series, arima_model) -> pd.Series:
    """
    Residuals of a fitted ARIMA model as actual - fitted values.

    Returns:
        pd.Series: Residuals on the index of `series`

    Raises:
        ValueError: If series is empty or lengths don't match
        AttributeError: If arima_model lacks fittedvalues
    """
    if len(series) == 0:
        error_msg = "Series is empty"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if not hasattr(arima_model, "fittedvalues"):
        error_msg = "Invalid ARIMA model object - missing fittedvalues attribute"
        logger.error(error_msg)
        raise AttributeError(error_msg)

    fitted_values = np.asarray(arima_model.fittedvalues, dtype=np.float64)
    if len(series) != len(fitted_values):
        error_msg = (
            f"Series length ({len(series)}) does not match fitted values length ({len(fitted_values)})"
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    residuals = pd.Series(
        series.to_numpy(dtype=np.float64) - fitted_values, index=series.index, name='residuals'
    )

    logger.info(
        f"Residuals extracted. Length: {len(residuals)}, Mean: {residuals.mean():.6f}, "
        f"Std: {residuals.std():.6f}"
    )
    return residuals


def ljung_box_test(residuals: pd.Series, lags: int = 10, model_df: int = 0) -> Tuple[float, float]:
    """
    Ljung-Box test for autocorrelation left in the residuals.

    Args:
        residuals (pd.Series): Model residuals (NaN values are dropped)
        lags (int): Number of autocorrelation lags tested
        model_df (int): Degrees of freedom used by the model (p + q)

    Returns:
        Tuple[float, float]: (Q statistic, p-value). A small p-value means the
            residuals are distinguishable from white noise.

    Raises:
        ValueError: If lags <= model_df or there are too few residuals
    """
    values = pd.Series(residuals).dropna().to_numpy(dtype=np.float64)

    if lags <= model_df:
        error_msg = f"lags ({lags}) must exceed model_df ({model_df})"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if len(values) <= lags:
        error_msg = f"Need more than {lags} residuals, got {len(values)}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    result = acorr_ljungbox(values, lags=[lags], model_df=model_df)
    statistic = float(result['lb_stat'].iloc[0])
    p_value = float(result['lb_pvalue'].iloc[0])

    logger.info(f"Ljung-Box test (lag {lags}, df {lags - model_df}): Q={statistic:.4f}, p-value={p_value:.6f}")
    return statistic, p_value


def forecast_arima(
    results,
    series: pd.Series,
    horizon: int,
    level: int = 95,
    order: Tuple[int, int, int] = DEFAULT_ORDER,
    seasonal_order: Optional[Tuple[int, int, int, int]] = None,
) -> Dict[str, Any]:
    """
    Forecast from a fitted ARIMA model.

    Args:
        results: ARIMAResults from fit_arima()
        series (pd.Series): The series the model was fitted on
        horizon (int): Number of periods ahead
        level (int): Prediction interval coverage in percent
        order, seasonal_order: Orders the model was fitted with, for the label

    Returns:
        dict: Common forecast dict; params hold the orders and criteria
    """
    if not isinstance(horizon, (int, np.integer)) or horizon <= 0:
        error_msg = f"horizon must be a positive integer, got {horizon}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    alpha = 1 - level / 100.0
    frame = results.get_forecast(steps=horizon).summary_frame(alpha=alpha)
    index = future_index(series, horizon)

    order = tuple(int(v) for v in order)
    seasonal_order = tuple(int(v) for v in (seasonal_order or NO_SEASONAL_ORDER))
    residuals = extract_residuals(series, results)

    forecast = {
        'model': 'arima',
        'mean': pd.Series(frame['mean'].to_numpy(), index=index, name='arima'),
        'lower': pd.Series(frame['mean_ci_lower'].to_numpy(), index=index, name='arima_lower'),
        'upper': pd.Series(frame['mean_ci_upper'].to_numpy(), index=index, name='arima_upper'),
        'level': level,
        'fitted': pd.Series(np.asarray(results.fittedvalues, dtype=np.float64), index=series.index,
                            name='arima_fitted'),
        'residuals': residuals,
        'params': {
            'label': f"ARIMA{order}{seasonal_order[:3]}[{seasonal_order[3]}]"
                     if seasonal_order[3] else f"ARIMA{order}",
            'order': order,
            'seasonal_order': seasonal_order,
            'aic': float(results.aic),
            'aicc': float(results.aicc),
            'bic': float(results.bic),
        },
    }

    logger.info(f"ARIMA forecast generated: {horizon} period(s)")
    return forecast
