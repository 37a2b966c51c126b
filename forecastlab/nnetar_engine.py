"""
NNETAR Engine Module for the forecastlab package

Neural network autoregression NNAR(p, P, k)[m]: a feed-forward network with
one hidden layer of k sigmoid nodes, fed with the lagged values y_{t-1..t-p}
and the seasonal lags y_{t-m}, ..., y_{t-Pm}. An ensemble of networks trained
from different seeds is averaged, and multi-step forecasts are produced
recursively by feeding each forecast back in as an input.

Functions:
    - select_nnetar_lags: Choose non-seasonal and seasonal input lags
    - default_hidden_size: Hidden layer size rule k = round((inputs + 1) / 2)
    - build_nnetar_model: Compiled Keras network for a given input size
    - fit_nnetar: Train the ensemble on a series
    - forecast_nnetar: Recursive forecasts, optional simulated intervals
"""

from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import tensorflow as tf
from statsmodels.tsa.ar_model import ar_select_order
from tensorflow import keras
from tensorflow.keras.callbacks import EarlyStopping
from tensorflow.keras.layers import Dense
from tensorflow.keras.optimizers import Adam
from tensorflow.keras.regularizers import l2

from forecastlab.exceptions import ConfigurationError, DataValidationError
from forecastlab.logger_config import get_logger, log_exception
from forecastlab.preprocessing import create_lagged_features, future_index


logger = get_logger(__name__)


def select_nnetar_lags(
    series: pd.Series,
    p: Optional[int] = None,
    P: int = 1,
    period: int = 1,
    max_lag: int = 10,
) -> List[int]:
    """
    Choose the input lags of an NNAR model.

    When p is None it is the highest lag of the linear AR model selected by
    AIC (statsmodels ar_select_order), at least 1. Seasonal lags m, 2m, ..., Pm
    are added only when period >= 2.

    Examples:
        >>> select_nnetar_lags(series, p=2, P=1, period=12)
        [1, 2, 12]
    """
    if p is None:
        values = series.dropna().to_numpy(dtype=np.float64)
        maxlag = max(1, min(max_lag, len(values) // 3))
        try:
            selection = ar_select_order(values, maxlag=maxlag, ic='aic')
            ar_lags = selection.ar_lags
        except Exception as e:
            logger.warning(f"AR order selection failed, using p=1: {str(e)}")
            ar_lags = None
        p = int(max(ar_lags)) if ar_lags else 1
        logger.info(f"Selected non-seasonal NNAR order p={p} (maxlag={maxlag})")

    if p < 1:
        error_msg = f"p must be at least 1, got {p}"
        logger.error(error_msg)
        raise ConfigurationError(error_msg, parameter_name='nnetar.p', invalid_value=p,
                                 allowed_range='[1, ∞)')

    lags = set(range(1, p + 1))
    if period is not None and period >= 2 and P > 0:
        lags.update(period * i for i in range(1, P + 1))

    return sorted(lags)


def default_hidden_size(n_inputs: int) -> int:
    """Hidden nodes k = round((inputs + 1) / 2), at least 1."""
    return max(1, int(round((n_inputs + 1) / 2)))


def build_nnetar_model(
    n_inputs: int, size: int, learning_rate: float = 0.01, decay: float = 0.0
) -> keras.Model:
    """
    Construct the single-hidden-layer network.

    Architecture:
    - Input: n_inputs lagged values
    - Hidden Dense layer: `size` sigmoid nodes, optional L2 weight decay
    - Output Dense layer: 1 linear node

    Raises:
        ConfigurationError: If n_inputs, size, learning_rate or decay are invalid
    """
    for name, value in (('n_inputs', n_inputs), ('size', size)):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
            error_msg = f"{name} must be a positive integer, got {value}"
            logger.error(error_msg)
            raise ConfigurationError(error_msg, parameter_name=f"nnetar.{name}",
                                     invalid_value=value, allowed_range="(0, ∞)")

    if learning_rate <= 0:
        error_msg = f"learning_rate must be positive, got {learning_rate}"
        logger.error(error_msg)
        raise ConfigurationError(error_msg, parameter_name="nnetar.learning_rate",
                                 invalid_value=learning_rate, allowed_range="(0, 1]")

    if decay < 0:
        error_msg = f"decay must be non-negative, got {decay}"
        logger.error(error_msg)
        raise ConfigurationError(error_msg, parameter_name="nnetar.decay",
                                 invalid_value=decay, allowed_range="[0, 1]")

    model = keras.Sequential([
        keras.Input(shape=(int(n_inputs),)),
        Dense(
            units=int(size),
            activation='sigmoid',
            kernel_regularizer=l2(decay) if decay > 0 else None,
        ),
        Dense(units=1, activation='linear'),
    ])
    model.compile(optimizer=Adam(learning_rate=learning_rate), loss='mse')

    logger.debug(f"Built NNAR network: inputs={n_inputs}, hidden={size}, decay={decay}")
    return model


def _ensemble_predict(networks: List[keras.Model], X: np.ndarray) -> np.ndarray:
    X = np.asarray(X, dtype=np.float32)
    predictions = [net(X, training=False).numpy().ravel() for net in networks]
    return np.mean(predictions, axis=0).astype(np.float64)


def _nnar_label(lags: List[int], size: int, period: int) -> str:
    p = 0
    while p < len(lags) and lags[p] == p + 1:
        p += 1
    seasonal = [lag for lag in lags[p:] if period and period >= 2 and lag % period == 0]
    if seasonal:
        return f"NNAR({p},{len(seasonal)},{size})[{period}]"
    return f"NNAR({p},{size})"


def fit_nnetar(
    series: pd.Series, config: Optional[Dict[str, Any]] = None, period: int = 1
) -> Dict[str, Any]:
    """
    Train an ensemble of NNAR networks on a series.

    The series is z-scored before training; fitted values and residuals are
    returned on the original scale, NaN for the first max(lags) observations.

    Args:
        series (pd.Series): Observations without missing values
        config (dict, optional): The 'nnetar' configuration section
        period (int): Seasonal period m (1 for non-seasonal)

    Returns:
        dict: Fitted model with keys networks, lags, size, center, scale,
              fitted, residuals, label, period

    Raises:
        DataValidationError: If the series has NaN values or is too short
        ConfigurationError: If network parameters are invalid
    """
    config = config or {}

    if series.isna().any():
        error_msg = "Series contains NaN values"
        logger.error(error_msg)
        raise DataValidationError(error_msg, data_shape=series.shape)

    lags = select_nnetar_lags(
        series,
        p=config.get('p'),
        P=config.get('P', 1),
        period=period,
        max_lag=config.get('max_lag', 10),
    )
    size = config.get('size') or default_hidden_size(len(lags))
    repeats = config.get('repeats', 20)
    epochs = config.get('epochs', 200)
    batch_size = config.get('batch_size', 32)
    patience = config.get('early_stopping_patience', 20)
    seed = config.get('seed')

    values = series.to_numpy(dtype=np.float64)
    if len(values) < max(lags) + 2:
        error_msg = (
            f"Series length ({len(values)}) too short for lags up to {max(lags)}; "
            f"need at least {max(lags) + 2} observations"
        )
        logger.error(error_msg)
        raise DataValidationError(error_msg, data_shape=series.shape)

    center = float(np.mean(values))
    scale = float(np.std(values))
    if scale == 0:
        scale = 1.0
    scaled = (values - center) / scale

    X, y = create_lagged_features(scaled, lags)
    X = X.astype(np.float32)
    y = y.astype(np.float32)
    label = _nnar_label(lags, size, period)

    logger.info(
        f"Training {label} ensemble: repeats={repeats}, epochs={epochs}, "
        f"samples={X.shape[0]}, lags={lags}"
    )

    networks = []
    try:
        for r in range(repeats):
            if seed is not None:
                tf.keras.utils.set_random_seed(int(seed) + r)
            network = build_nnetar_model(
                X.shape[1], size,
                learning_rate=config.get('learning_rate', 0.01),
                decay=config.get('decay', 0.0),
            )
            history = network.fit(
                X, y,
                epochs=epochs,
                batch_size=min(batch_size, X.shape[0]),
                callbacks=[EarlyStopping(monitor='loss', patience=patience, restore_best_weights=True)],
                verbose=0,
            )
            logger.debug(
                f"Network {r + 1}/{repeats}: epochs={len(history.history['loss'])}, "
                f"loss={min(history.history['loss']):.6f}"
            )
            networks.append(network)
    except ConfigurationError:
        raise
    except Exception as e:
        logger.error(f"NNAR training failed: {str(e)}")
        log_exception(logger, e)
        raise

    fitted = np.full(len(values), np.nan)
    fitted[max(lags):] = _ensemble_predict(networks, X) * scale + center
    residuals = values - fitted

    logger.info(
        f"{label} trained. In-sample RMSE: {np.sqrt(np.nanmean(residuals ** 2)):.6f}"
    )

    return {
        'networks': networks,
        'lags': lags,
        'size': int(size),
        'center': center,
        'scale': scale,
        'fitted': pd.Series(fitted, index=series.index, name='nnetar_fitted'),
        'residuals': pd.Series(residuals, index=series.index, name='nnetar_residuals'),
        'label': label,
        'period': period,
    }


def forecast_nnetar(
    model: Dict[str, Any],
    series: pd.Series,
    horizon: int,
    level: int = 95,
    n_simulations: int = 0,
    seed: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Recursive multi-step forecast from a fitted NNAR ensemble.

    With n_simulations > 0, prediction intervals come from simulated sample
    paths in which every step adds a residual drawn (with replacement) from
    the in-sample residuals. Otherwise lower/upper are None.

    Args:
        model (dict): Output of fit_nnetar()
        series (pd.Series): The series the model was fitted on
        horizon (int): Number of periods ahead
        level (int): Interval coverage in percent
        n_simulations (int): Number of simulated paths
        seed (int, optional): Seed for residual resampling

    Returns:
        dict: Common forecast dict
    """
    if not isinstance(horizon, (int, np.integer)) or horizon <= 0:
        error_msg = f"horizon must be a positive integer, got {horizon}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    networks = model['networks']
    lags = model['lags']
    center, scale = model['center'], model['scale']
    n = len(series)

    history = (series.to_numpy(dtype=np.float64) - center) / scale
    path = np.concatenate([history, np.zeros(horizon)])
    for step in range(horizon):
        t = n + step
        inputs = np.array([[path[t - lag] for lag in lags]])
        path[t] = _ensemble_predict(networks, inputs)[0]

    point = path[n:] * scale + center
    index = future_index(series, horizon)
    lower = upper = None

    if n_simulations and n_simulations > 0:
        residuals = model['residuals'].dropna().to_numpy(dtype=np.float64) / scale
        if len(residuals) == 0:
            logger.warning("No residuals available, skipping simulated intervals")
        else:
            rng = np.random.default_rng(seed)
            paths = np.tile(np.concatenate([history, np.zeros(horizon)]), (n_simulations, 1))
            for step in range(horizon):
                t = n + step
                inputs = np.column_stack([paths[:, t - lag] for lag in lags])
                paths[:, t] = _ensemble_predict(networks, inputs) + rng.choice(residuals, size=n_simulations)

            simulated = paths[:, n:] * scale + center
            alpha = 1 - level / 100.0
            lower = pd.Series(np.quantile(simulated, alpha / 2, axis=0), index=index, name='nnetar_lower')
            upper = pd.Series(np.quantile(simulated, 1 - alpha / 2, axis=0), index=index, name='nnetar_upper')
            logger.info(f"Simulated {n_simulations} sample paths for {level}% intervals")

    logger.info(f"{model['label']} forecast generated: {horizon} period(s)")

    return {
        'model': 'nnetar',
        'mean': pd.Series(point, index=index, name='nnetar'),
        'lower': lower,
        'upper': upper,
        'level': level,
        'fitted': model['fitted'],
        'residuals': model['residuals'],
        'params': {
            'label': model['label'],
            'lags': list(lags),
            'size': model['size'],
            'repeats': len(networks),
        },
    }
