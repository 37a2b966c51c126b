"""
Output Manager Module for the forecastlab package

Exports forecasts, comparison tables and full result dictionaries to CSV or
JSON, prints human-readable summaries and reports progress on the console.

Result dictionaries produced by the forecaster CLI carry a 'kind' key:
    - 'forecast': accuracy table, forecasts per model, errors per family
    - 'decompose': components frame and feature strengths
    - 'backtest': backtest frame, performance summary, trade log
    - 'classify': classifier leaderboard

Functions:
    - validate_output_path: Validate and create output directories
    - export_forecasts_csv: Forecast dicts to a long-format CSV
    - export_table_csv: DataFrame to CSV
    - export_to_json: Any result payload to JSON with a UTC timestamp
    - export_results: Dispatch a result dictionary by file suffix
    - export_to_stdout: Print a result summary
    - format_results_summary: Human-readable summary text
    - report_progress: Console progress bar
"""

import csv
import json
import math
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd

from forecastlab.exceptions import FileIOError
from forecastlab.logger_config import get_logger, log_exception


logger = get_logger(__name__)

FORECAST_CSV_COLUMNS = ['model', 'index', 'mean', 'lower', 'upper']


def validate_output_path(output_path: str) -> bool:
    """
    Validate and prepare the directory an output file will be written to.

    Creates parent directories when needed and checks they are writable.

    Returns:
        bool: True if the directory exists and is writable, False otherwise
            (errors are logged, not raised)

    Examples:
        >>> validate_output_path("output/forecast.csv")
        True
    """
    try:
        parent_dir = Path(output_path).parent
        parent_dir.mkdir(parents=True, exist_ok=True)

        test_file = parent_dir / ".write_test_tmp"
        test_file.touch()
        test_file.unlink()

        logger.debug(f"Output path validated: {parent_dir}")
        return True

    except (OSError, ValueError) as e:
        logger.error(f"Output directory for {output_path} is not writable: {str(e)}")
        return False


def _format_index(value: Any) -> Any:
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.isoformat()
    if isinstance(value, np.integer):
        return int(value)
    return value


def _to_serializable(value: Any) -> Any:
    """Convert numpy, pandas and datetime values into JSON-compatible types."""
    if isinstance(value, dict):
        return {str(k): _to_serializable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_serializable(v) for v in value]
    if isinstance(value, pd.DataFrame):
        frame = value.reset_index()
        return [_to_serializable(record) for record in frame.to_dict(orient='records')]
    if isinstance(value, pd.Series):
        return [
            {'index': _format_index(i), 'value': _to_serializable(v)}
            for i, v in value.items()
        ]
    if isinstance(value, np.ndarray):
        return [_to_serializable(v) for v in value.tolist()]
    if isinstance(value, (pd.Timestamp, datetime)):
        return value.isoformat()
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        value = float(value)
        return None if math.isnan(value) or math.isinf(value) else value
    if value is None or isinstance(value, str):
        return value
    return str(value)


def export_forecasts_csv(output_path: str, forecasts: Dict[str, Dict[str, Any]]) -> None:
    """
    Write forecast dicts to a long-format CSV.

    CSV Format:
        model,index,mean,lower,upper
        naive,2024-01-08,101.2,97.4,105.0
        arima,2024-01-08,101.5,98.0,105.1

    lower/upper are left empty for forecasts without intervals.

    Raises:
        FileIOError: If the file cannot be written
    """
    try:
        if not validate_output_path(output_path):
            raise IOError(f"Failed to validate output path: {output_path}")

        n_rows = 0
        with open(output_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=FORECAST_CSV_COLUMNS)
            writer.writeheader()

            for name, forecast in forecasts.items():
                mean = forecast['mean']
                lower = forecast.get('lower')
                upper = forecast.get('upper')
                for position, index in enumerate(mean.index):
                    writer.writerow({
                        'model': name,
                        'index': _format_index(index),
                        'mean': float(mean.iloc[position]),
                        'lower': '' if lower is None else float(lower.iloc[position]),
                        'upper': '' if upper is None else float(upper.iloc[position]),
                    })
                    n_rows += 1

        logger.info(f"CSV export successful: {output_path} ({n_rows} rows, {len(forecasts)} model(s))")

    except (IOError, OSError, KeyError) as e:
        logger.error(f"Error in export_forecasts_csv: {str(e)}")
        log_exception(logger, e)
        raise FileIOError(
            error_message=f"CSV export failed: {str(e)}",
            file_path=output_path,
            operation="write",
        ) from e


def export_table_csv(output_path: str, table: pd.DataFrame) -> None:
    """
    Write a DataFrame (accuracy table, leaderboard, backtest) to CSV with its index.

    Raises:
        FileIOError: If the file cannot be written
    """
    try:
        if not validate_output_path(output_path):
            raise IOError(f"Failed to validate output path: {output_path}")

        table.to_csv(output_path, index=True)
        logger.info(f"Table exported: {output_path} ({len(table)} rows)")

    except (IOError, OSError) as e:
        logger.error(f"Error in export_table_csv: {str(e)}")
        log_exception(logger, e)
        raise FileIOError(
            error_message=f"CSV export failed: {str(e)}",
            file_path=output_path,
            operation="write",
        ) from e


def export_to_json(output_path: str, payload: Dict[str, Any]) -> None:
    """
    Write a result payload to JSON.

    Numpy and pandas values are converted (Series become lists of
    {index, value}, DataFrames lists of records, NaN becomes null) and a UTC
    ISO 8601 'timestamp' is added.

    Raises:
        FileIOError: If the payload cannot be serialized or written
    """
    try:
        if not validate_output_path(output_path):
            raise IOError(f"Failed to validate output path: {output_path}")

        json_data = {'timestamp': datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')}
        json_data.update(_to_serializable(payload))

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(json_data, f, indent=2, allow_nan=False)

        logger.info(f"JSON export successful: {output_path}")

    except (IOError, OSError, TypeError, ValueError) as e:
        logger.error(f"Error in export_to_json: {str(e)}")
        log_exception(logger, e)
        raise FileIOError(
            error_message=f"JSON export failed: {str(e)}",
            file_path=output_path,
            operation="write",
        ) from e


def export_results(results: Dict[str, Any], output_path: str) -> str:
    """
    Export a CLI result dictionary, choosing the format from the file suffix.

    '.json' writes the whole result. '.csv' writes the main table of the
    result kind: forecasts (long format), decomposition components, backtest
    frame or classifier leaderboard.

    Returns:
        str: Absolute path of the written file

    Raises:
        ValueError: On an unsupported suffix or unknown result kind
        FileIOError: If writing fails
    """
    file_path = Path(output_path)
    suffix = file_path.suffix.lower()
    kind = results.get('kind')

    if suffix == '.json':
        export_to_json(str(file_path), results)
    elif suffix == '.csv':
        if kind == 'forecast':
            export_forecasts_csv(str(file_path), results['forecasts'])
        elif kind == 'decompose':
            export_table_csv(str(file_path), results['components'])
        elif kind == 'backtest':
            export_table_csv(str(file_path), results['backtest'])
        elif kind == 'classify':
            export_table_csv(str(file_path), results['leaderboard'])
        else:
            error_msg = f"Unknown result kind '{kind}'"
            logger.error(error_msg)
            raise ValueError(error_msg)
    else:
        error_msg = f"Unsupported output format '{suffix}'. Use .csv or .json"
        logger.error(error_msg)
        raise ValueError(error_msg)

    return str(file_path.absolute())


def export_to_stdout(results: Dict[str, Any]) -> None:
    """Print the summary of a result dictionary."""
    print(format_results_summary(results))


def _section(lines, title: str) -> None:
    lines.append("\n" + "-" * 70)
    lines.append(title)
    lines.append("-" * 70)


def _metric_lines(lines, values: Dict[str, Any]) -> None:
    for name, value in values.items():
        if isinstance(value, (float, np.floating)):
            lines.append(f"{name:25s}: {value:.6f}")
        else:
            lines.append(f"{name:25s}: {value}")


def format_results_summary(results: Dict[str, Any]) -> str:
    """
    Create a human-readable summary of a forecast, decomposition, backtest
    or classification result.

    Raises:
        TypeError: If results is not a dictionary
        ValueError: If results has no known 'kind'
    """
    if not isinstance(results, dict):
        error_msg = f"results must be a dictionary, got {type(results)}"
        logger.error(error_msg)
        raise TypeError(error_msg)

    kind = results.get('kind')
    titles = {
        'forecast': "FORECAST MODEL COMPARISON",
        'decompose': "TIME SERIES DECOMPOSITION",
        'backtest': "MOVING-AVERAGE STRATEGY BACKTEST",
        'classify': "DIRECTION CLASSIFIER LEADERBOARD",
    }
    if kind not in titles:
        error_msg = f"results has unknown kind '{kind}'"
        logger.error(error_msg)
        raise ValueError(error_msg)

    lines = ["=" * 70, titles[kind], "=" * 70]
    if results.get('series_name'):
        lines.append(f"\nSeries: {results['series_name']}")

    if kind == 'forecast':
        lines.append(f"Forecast Horizon: {results.get('horizon')} periods")
        lines.append(f"Seasonal Period: {results.get('period')}")
        lines.append(f"Train/Test: {results.get('train_size')}/{results.get('test_size')} observations")

        accuracy = results.get('accuracy')
        if accuracy is not None and len(accuracy):
            _section(lines, "TEST SET ACCURACY (sorted by RMSE)")
            lines.append(accuracy.to_string(float_format=lambda v: f"{v:.4f}"))

        forecasts = results.get('forecasts', {})
        if forecasts:
            _section(lines, f"FORECASTS ({results.get('level')}% intervals)")
            for name, forecast in forecasts.items():
                label = forecast.get('params', {}).get('label', name)
                mean = forecast['mean']
                lines.append(
                    f"{label:25s}: first={mean.iloc[0]:.4f}, last={mean.iloc[-1]:.4f}"
                )

        errors = results.get('errors', {})
        if errors:
            _section(lines, "FAILED MODELS")
            for name, message in errors.items():
                lines.append(f"{name:25s}: {message}")

    elif kind == 'decompose':
        lines.append(f"Method: {results.get('method')}, Period: {results.get('period')}")
        _section(lines, "FEATURE STRENGTH")
        _metric_lines(lines, results.get('strength', {}))

    elif kind == 'backtest':
        _section(lines, "PERFORMANCE")
        _metric_lines(lines, results.get('summary', {}))
        trades = results.get('trades')
        if trades is not None:
            lines.append(f"{'trades logged':25s}: {len(trades)}")

    elif kind == 'classify':
        lines.append(f"Train/Test: {results.get('train_size')}/{results.get('test_size')} observations")
        _section(lines, f"LEADERBOARD (sorted by {results.get('sort_metric', 'accuracy')})")
        lines.append(results['leaderboard'].to_string(float_format=lambda v: f"{v:.4f}"))

    lines.append("\n" + "=" * 70)
    logger.debug("Results summary formatted")
    return "\n".join(lines)


def report_progress(current_step: int, total_steps: int, message: Optional[str] = None) -> None:
    """
    Reports progress to the console with a progress indicator.

    Args:
        current_step (int): Current step number.
        total_steps (int): Total number of steps.
        message (str, optional): Additional message to display. Defaults to None.
    """
    if current_step <= 0 or total_steps <= 0:
        logger.warning(f"Invalid progress values: current_step={current_step}, total_steps={total_steps}")
        return

    percentage = min(100, int((current_step / total_steps) * 100))
    bar_length = 40
    filled = min(bar_length, int(bar_length * current_step / total_steps))
    bar = '#' * filled + '-' * (bar_length - filled)

    progress_str = f"\rProgress: [{bar}] {percentage}% ({current_step}/{total_steps})"
    if message:
        progress_str += f" - {message}"

    print(progress_str, end='', flush=True)

    if current_step >= total_steps:
        print()
