"""
Evaluation Module for the forecastlab package

Forecast accuracy measures, a comparison table across forecasting models,
walk-forward (expanding window) validation and metrics reports.

Functions:
    - calculate_rmse: Root Mean Squared Error
    - calculate_mae: Mean Absolute Error
    - calculate_mape: Mean Absolute Percentage Error
    - calculate_mase: Mean Absolute Scaled Error
    - accuracy_table: Accuracy of several forecasts on the same test set
    - walk_forward_validation: One-step-ahead validation with an expanding window
    - create_metrics_report: Metrics report with prediction statistics
"""

from typing import Any, Callable, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from forecastlab.logger_config import get_logger


logger = get_logger(__name__)


def _as_pair(actual, predicted) -> Tuple[np.ndarray, np.ndarray]:
    """Convert to float arrays and reject empty, mismatched or NaN input."""
    try:
        actual = np.asarray(actual, dtype=np.float64)
        predicted = np.asarray(predicted, dtype=np.float64)
    except (TypeError, ValueError) as e:
        error_msg = f"Inputs must be numeric arrays: {str(e)}"
        logger.error(error_msg)
        raise ValueError(error_msg) from e

    if actual.size == 0 or predicted.size == 0:
        error_msg = "Input arrays cannot be empty"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if actual.shape != predicted.shape:
        error_msg = f"Mismatched array lengths: actual ({actual.shape}) vs predicted ({predicted.shape})"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if np.any(np.isnan(actual)) or np.any(np.isnan(predicted)):
        error_msg = "Input arrays contain NaN values"
        logger.error(error_msg)
        raise ValueError(error_msg)

    return actual, predicted


def calculate_rmse(actual: np.ndarray, predicted: np.ndarray) -> float:
    """
    Calculate Root Mean Squared Error (RMSE): sqrt(mean((actual - predicted)^2)).

    Large errors weigh more than small ones.

    Raises:
        ValueError: If arrays are empty, have mismatched lengths, or contain NaN

    Examples:
        >>> calculate_rmse(np.array([1, 2, 3, 4, 5]), np.array([1.1, 2.1, 2.9, 4.2, 4.8]))
        0.1483...
    """
    actual, predicted = _as_pair(actual, predicted)
    rmse = float(np.sqrt(np.mean((actual - predicted) ** 2)))
    logger.debug(f"RMSE calculated: {rmse:.6f}")
    return rmse


def calculate_mae(actual: np.ndarray, predicted: np.ndarray) -> float:
    """
    Calculate Mean Absolute Error (MAE): mean(|actual - predicted|).

    Raises:
        ValueError: If arrays are empty, have mismatched lengths, or contain NaN

    Examples:
        >>> calculate_mae(np.array([1, 2, 3, 4, 5]), np.array([1.1, 2.1, 2.9, 4.2, 4.8]))
        0.14
    """
    actual, predicted = _as_pair(actual, predicted)
    mae = float(np.mean(np.abs(actual - predicted)))
    logger.debug(f"MAE calculated: {mae:.6f}")
    return mae


def calculate_mape(actual: np.ndarray, predicted: np.ndarray) -> float:
    """
    Calculate Mean Absolute Percentage Error in percent: 100 * mean(|e / actual|).

    Raises:
        ValueError: On invalid input or when any actual value is zero
    """
    actual, predicted = _as_pair(actual, predicted)
    if np.any(actual == 0):
        error_msg = "MAPE is undefined when actual values contain zeros"
        logger.error(error_msg)
        raise ValueError(error_msg)

    mape = float(100.0 * np.mean(np.abs((actual - predicted) / actual)))
    logger.debug(f"MAPE calculated: {mape:.6f}")
    return mape


def calculate_mase(
    actual: np.ndarray, predicted: np.ndarray, training: np.ndarray, period: int = 1
) -> float:
    """
    Calculate Mean Absolute Scaled Error.

    The test MAE is divided by the in-sample MAE of the seasonal naive method
    (naive when period is 1) on the training data, so values below 1 beat
    that benchmark.

    Raises:
        ValueError: On invalid input, a training set not longer than the
            period, or a zero scaling factor
    """
    actual, predicted = _as_pair(actual, predicted)
    training = np.asarray(training, dtype=np.float64)
    training = training[~np.isnan(training)]

    if period < 1:
        error_msg = f"period must be a positive integer, got {period}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if len(training) <= period:
        error_msg = f"Training data needs more than {period} observations for MASE, got {len(training)}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    scale = float(np.mean(np.abs(training[period:] - training[:-period])))
    if scale == 0:
        error_msg = "MASE scaling factor is zero (constant training data)"
        logger.error(error_msg)
        raise ValueError(error_msg)

    mase = float(np.mean(np.abs(actual - predicted)) / scale)
    logger.debug(f"MASE calculated: {mase:.6f}")
    return mase


def accuracy_table(
    forecasts: Dict[str, Any],
    actual: pd.Series,
    training: pd.Series,
    period: int = 1,
) -> pd.DataFrame:
    """
    Score several forecasts of the same test set.

    Args:
        forecasts (dict): Model name -> forecast dict (or point forecast array/Series)
        actual (pd.Series): Observed test values
        training (pd.Series): Training values used for the MASE scale
        period (int): Seasonal period for MASE

    Returns:
        pd.DataFrame: Index 'model', columns RMSE, MAE, MAPE, MASE, sorted by
            RMSE ascending. MAPE is NaN when actual values contain zeros and
            MASE is NaN when its scale is undefined.

    Examples:
        >>> table = accuracy_table({'naive': naive_fc, 'drift': drift_fc}, test, train)
        >>> table.index[0]
        'drift'
    """
    actual_values = np.asarray(actual, dtype=np.float64)
    rows = []

    for name, forecast in forecasts.items():
        point = forecast['mean'] if isinstance(forecast, dict) else forecast
        point = np.asarray(point, dtype=np.float64)[:len(actual_values)]

        row = {
            'model': name,
            'RMSE': calculate_rmse(actual_values, point),
            'MAE': calculate_mae(actual_values, point),
            'MAPE': np.nan,
            'MASE': np.nan,
        }
        if not np.any(actual_values == 0):
            row['MAPE'] = calculate_mape(actual_values, point)
        try:
            row['MASE'] = calculate_mase(actual_values, point, training, period)
        except ValueError as e:
            logger.warning(f"MASE not available for {name}: {str(e)}")

        rows.append(row)

    table = pd.DataFrame(rows, columns=['model', 'RMSE', 'MAE', 'MAPE', 'MASE']).set_index('model')
    table = table.sort_values('RMSE')
    logger.info(f"Accuracy table built for {len(table)} model(s) on {len(actual_values)} test point(s)")
    return table


def walk_forward_validation(
    data: pd.Series, model_func: Callable, test_size: float = 0.2
) -> Dict[str, Any]:
    """
    Perform walk-forward validation on time series data.

    The model is refitted on an expanding window and asked for the next
    value at every step of the test period, so no future observation ever
    reaches the training data.

    Args:
        data (pd.Series): Time series in chronological order
        model_func (Callable): model_func(train_data) -> next value (float,
            or array/Series whose last element is used)
        test_size (float): Fraction of data used for testing (0.1 to 0.5)

    Returns:
        dict: predictions, actuals, rmse, mae, test_size, num_iterations and
            metadata (total/train/test sample counts and a per-step errors_log)

    Raises:
        TypeError: If data is not a Series or model_func is not callable
        ValueError: If test_size is out of range, data has NaN or is too
            short, or model_func fails

    Examples:
        >>> results = walk_forward_validation(data, lambda train: train.iloc[-1], test_size=0.3)
        >>> results['num_iterations']
    """
    if not isinstance(data, pd.Series):
        error_msg = "Data must be a pandas Series"
        logger.error(error_msg)
        raise TypeError(error_msg)

    if not callable(model_func):
        error_msg = "model_func must be callable"
        logger.error(error_msg)
        raise TypeError(error_msg)

    if not (0.1 <= test_size <= 0.5):
        error_msg = f"test_size must be between 0.1 and 0.5, got {test_size}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if data.isna().any():
        error_msg = "Data contains NaN values"
        logger.error(error_msg)
        raise ValueError(error_msg)

    n_samples = len(data)
    n_test = max(1, int(n_samples * test_size))
    n_train = n_samples - n_test

    if n_train < 2:
        error_msg = (
            f"Not enough training data: need at least 2 samples, got {n_train} "
            f"(test_size={test_size} with {n_samples} total samples)"
        )
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info(f"Starting walk-forward validation: total={n_samples}, train={n_train}, test={n_test}")

    predictions = []
    actuals = []
    errors_log = []

    for i in range(n_test):
        train_end = n_train + i
        train_data = data.iloc[:train_end]
        actual_value = float(data.iloc[train_end])

        try:
            prediction = model_func(train_data)
            if isinstance(prediction, (np.ndarray, pd.Series, list)):
                values = np.asarray(prediction, dtype=np.float64).ravel()
                if values.size == 0:
                    raise ValueError("Model returned empty array")
                prediction = float(values[-1])
            else:
                prediction = float(prediction)
        except Exception as e:
            error_msg = f"Model function failed at iteration {i + 1}: {str(e)}"
            logger.error(error_msg)
            raise ValueError(error_msg) from e

        predictions.append(prediction)
        actuals.append(actual_value)
        errors_log.append({
            "iteration": i + 1,
            "train_size": train_end,
            "actual": actual_value,
            "predicted": prediction,
            "error": actual_value - prediction,
        })
        logger.debug(
            f"Iteration {i + 1}: train_size={train_end}, actual={actual_value:.6f}, "
            f"predicted={prediction:.6f}"
        )

    predictions_array = np.array(predictions)
    actuals_array = np.array(actuals)
    rmse = calculate_rmse(actuals_array, predictions_array)
    mae = calculate_mae(actuals_array, predictions_array)

    logger.info(f"Walk-forward validation complete. RMSE: {rmse:.6f}, MAE: {mae:.6f}")

    return {
        "predictions": predictions_array,
        "actuals": actuals_array,
        "rmse": rmse,
        "mae": mae,
        "test_size": test_size,
        "num_iterations": n_test,
        "metadata": {
            "total_samples": n_samples,
            "train_samples": n_train,
            "test_samples": n_test,
            "errors_log": errors_log,
        },
    }


def create_metrics_report(
    actual: np.ndarray, predicted: np.ndarray, model_params: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Build a metrics report for one set of predictions.

    Returns:
        dict: metrics (rmse, mae, mape when defined), predictions (means,
            standard deviations, count), model_params (a copy) and a one-line
            summary string

    Raises:
        ValueError: If arrays are empty, mismatched or contain NaN
    """
    actual, predicted = _as_pair(actual, predicted)
    logger.info(f"Creating metrics report for {len(actual)} predictions")

    metrics = {
        "rmse": calculate_rmse(actual, predicted),
        "mae": calculate_mae(actual, predicted),
    }
    if not np.any(actual == 0):
        metrics["mape"] = calculate_mape(actual, predicted)

    statistics = {
        "actual_mean": float(np.mean(actual)),
        "actual_std": float(np.std(actual)),
        "predicted_mean": float(np.mean(predicted)),
        "predicted_std": float(np.std(predicted)),
        "n_predictions": len(actual),
    }

    summary = (
        f"Model Performance Summary: "
        f"RMSE={metrics['rmse']:.6f}, MAE={metrics['mae']:.6f}, "
        f"Predictions={statistics['n_predictions']}, "
        f"Actual Mean={statistics['actual_mean']:.6f}, "
        f"Predicted Mean={statistics['predicted_mean']:.6f}"
    )

    report = {
        "metrics": metrics,
        "predictions": statistics,
        "model_params": dict(model_params) if model_params else {},
        "summary": summary,
    }

    logger.info(f"Metrics report created: {summary}")
    return report
