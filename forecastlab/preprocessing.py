"""
Data Preprocessing Module for the forecastlab package

Reshaping helpers shared by every forecasting chapter: missing value
imputation, returns, chronological train/test splits, seasonal period
inference, forecast index construction and lagged design matrices.

Functions:
    - impute_missing: Forward fill missing values (t with t-1), then backward fill
    - calculate_returns: Simple or log returns
    - train_test_split: Chronological holdout split, never shuffled
    - infer_seasonal_period: Observations per seasonal cycle from the index frequency
    - future_index: Index for the periods following the last observation
    - create_lagged_features: Lagged input matrix and one-step target
"""

import re
from typing import Sequence, Tuple, Union

import numpy as np
import pandas as pd

from forecastlab.logger_config import get_logger


logger = get_logger(__name__)

# Observations per seasonal cycle, keyed by pandas offset alias prefix.
SEASONAL_PERIODS = {
    'B': 5,
    'C': 5,
    'D': 7,
    'W': 52,
    'SM': 24,
    'M': 12,
    'BM': 12,
    'Q': 4,
    'BQ': 4,
    'A': 1,
    'Y': 1,
    'BA': 1,
    'BY': 1,
    'H': 24,
    'BH': 24,
}


def impute_missing(data: pd.Series) -> pd.Series:
    """
    Forward fill missing values in a time series.

    Replaces NaN with the previous available value (t-1). Leading NaN values
    with no previous value are filled backward.

    Examples:
        >>> prices = pd.Series([100, np.nan, np.nan, 102, 103])
        >>> impute_missing(prices).tolist()
        [100.0, 100.0, 100.0, 102.0, 103.0]
    """
    logger.info(f"Imputing missing values. Missing count before: {data.isna().sum()}")

    imputed_data = data.ffill().bfill()

    missing_after = int(imputed_data.isna().sum())
    logger.info(f"Missing values after imputation: {missing_after}")

    if missing_after > 0:
        logger.warning(
            f"Still {missing_after} missing values after forward and backward fill"
        )

    return imputed_data


def calculate_returns(prices: pd.Series, method: str = 'simple') -> pd.Series:
    """
    Calculate returns from a price series.

    simple: R_t = (P_t - P_{t-1}) / P_{t-1}
    log:    r_t = ln(P_t) - ln(P_{t-1})

    Args:
        prices (pd.Series): Input price series
        method (str): 'simple' or 'log'

    Returns:
        pd.Series: Returns series (first value is NaN)

    Raises:
        ValueError: If prices contain zero or negative values or method is unknown

    Examples:
        >>> calculate_returns(pd.Series([100, 102, 101])).round(4).tolist()
        [nan, 0.02, -0.0098]
    """
    if method not in ('simple', 'log'):
        error_msg = f"Unknown returns method '{method}'. Use 'simple' or 'log'"
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info(f"Calculating {method} returns from price series of length {len(prices)}")

    if (prices.dropna() <= 0).any():
        error_msg = "Price series contains zero or negative values"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if method == 'simple':
        returns = prices.pct_change()
    else:
        returns = np.log(prices).diff()

    logger.info(f"Returns calculated. Mean: {returns.mean():.6f}, Std: {returns.std():.6f}")
    return returns


def train_test_split(
    series: pd.Series, test_size: Union[float, int] = 0.2
) -> Tuple[pd.Series, pd.Series]:
    """
    Split a time series chronologically into training and test parts.

    Args:
        series (pd.Series): Series sorted in time order
        test_size (float | int): Fraction in (0, 1) of trailing observations,
                                 or an absolute number of trailing observations

    Returns:
        Tuple[pd.Series, pd.Series]: (train, test), train strictly before test

    Raises:
        ValueError: If test_size is invalid or either part would be empty

    Examples:
        >>> train, test = train_test_split(pd.Series(range(10)), test_size=0.2)
        >>> len(train), len(test)
        (8, 2)
    """
    n_samples = len(series)

    if isinstance(test_size, bool):
        raise ValueError(f"test_size must be a fraction or an integer, got {test_size}")

    if isinstance(test_size, (int, np.integer)):
        n_test = int(test_size)
    elif isinstance(test_size, (float, np.floating)) and 0 < test_size < 1:
        n_test = int(round(n_samples * test_size))
    else:
        error_msg = f"test_size must be in (0, 1) or a positive integer, got {test_size}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    n_train = n_samples - n_test
    if n_test < 1 or n_train < 1:
        error_msg = (
            f"Split leaves an empty part: {n_samples} samples, "
            f"train={n_train}, test={n_test}"
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    train = series.iloc[:n_train]
    test = series.iloc[n_train:]

    logger.info(f"Chronological split: train={len(train)}, test={len(test)}")
    return train, test


def _index_frequency(index: pd.Index):
    if not isinstance(index, pd.DatetimeIndex) or len(index) < 3:
        return None
    if index.freq is not None:
        return index.freq
    inferred = pd.infer_freq(index)
    return pd.tseries.frequencies.to_offset(inferred) if inferred else None


def infer_seasonal_period(series: pd.Series, default: int = 1) -> int:
    """
    Infer the number of observations per seasonal cycle from the index.

    Business-daily 5, daily 7, weekly 52, monthly 12, quarterly 4, yearly 1,
    hourly 24. Anything else, including non-datetime indexes, gives default.

    Examples:
        >>> idx = pd.date_range('2020-01-01', periods=24, freq='MS')
        >>> infer_seasonal_period(pd.Series(range(24), index=idx))
        12
    """
    offset = _index_frequency(series.index)
    if offset is None:
        logger.debug(f"No regular frequency found, seasonal period defaults to {default}")
        return default

    alias = re.sub(r'^\d+', '', offset.freqstr).split('-')[0].upper()
    candidates = [alias]
    if len(alias) > 1 and alias[-1] in ('S', 'E'):
        candidates.append(alias[:-1])

    for candidate in candidates:
        if candidate in SEASONAL_PERIODS:
            period = SEASONAL_PERIODS[candidate]
            logger.info(f"Inferred seasonal period {period} from frequency '{offset.freqstr}'")
            return period

    logger.debug(f"Unrecognised frequency '{offset.freqstr}', seasonal period defaults to {default}")
    return default


def future_index(series: pd.Series, horizon: int) -> pd.Index:
    """
    Build the index for the `horizon` periods after the last observation.

    Dates continue the inferred frequency of a DatetimeIndex; any other index
    continues as integer positions.

    Examples:
        >>> future_index(pd.Series([1.0, 2.0, 3.0]), 2).tolist()
        [3, 4]
    """
    if not isinstance(horizon, (int, np.integer)) or horizon <= 0:
        error_msg = f"horizon must be a positive integer, got {horizon}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    offset = _index_frequency(series.index)
    if offset is not None:
        return pd.date_range(start=series.index[-1], periods=horizon + 1, freq=offset)[1:]

    if isinstance(series.index, pd.RangeIndex) or pd.api.types.is_integer_dtype(series.index):
        start = int(series.index[-1]) + 1 if len(series) else 0
    else:
        start = len(series)
    return pd.RangeIndex(start, start + horizon)


def create_lagged_features(
    data: np.ndarray, lags: Sequence[int]
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Build a lagged design matrix for one-step-ahead autoregression.

    Row t holds the values at t - lag for each lag (ascending lag order);
    the target is the value at t. The first max(lags) observations only
    serve as inputs.

    Args:
        data (np.ndarray): 1D array of observations
        lags (Sequence[int]): Positive lags, e.g. [1, 2, 12]

    Returns:
        Tuple[np.ndarray, np.ndarray]: X of shape [samples, len(lags)], y of shape [samples]

    Raises:
        ValueError: If data is not 1D, lags are invalid or data is too short

    Examples:
        >>> X, y = create_lagged_features(np.arange(6, dtype=float), [1, 2])
        >>> X[0].tolist(), y[0]
        ([1.0, 0.0], 2.0)
    """
    data = np.asarray(data, dtype=np.float64)

    if data.ndim != 1:
        error_msg = f"Data must be 1D array, got shape {data.shape}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if len(lags) == 0 or any(
        isinstance(lag, bool) or not isinstance(lag, (int, np.integer)) or lag <= 0 for lag in lags
    ):
        error_msg = f"lags must be a non-empty sequence of positive integers, got {list(lags)}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    lags = sorted(set(int(lag) for lag in lags))
    max_lag = lags[-1]

    if len(data) <= max_lag:
        error_msg = f"Data length ({len(data)}) must exceed the largest lag ({max_lag})"
        logger.error(error_msg)
        raise ValueError(error_msg)

    n_rows = len(data) - max_lag
    X = np.column_stack([data[max_lag - lag: max_lag - lag + n_rows] for lag in lags])
    y = data[max_lag:]

    logger.debug(f"Lagged features created: X shape={X.shape}, lags={lags}")
    return X, y
