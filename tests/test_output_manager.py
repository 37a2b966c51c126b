"""
Unit tests for Output Manager Module

Tests export and display functions:
- validate_output_path: Path validation and directory creation
- export_forecasts_csv: Long-format forecast CSV
- export_to_json: JSON export with timestamp and NaN handling
- export_results: Dispatch by suffix and result kind
- format_results_summary / export_to_stdout: Console summaries
- report_progress: Progress bar
"""

import csv
import json
import tempfile
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from forecastlab.exceptions import FileIOError
from forecastlab.output_manager import (
    export_forecasts_csv,
    export_results,
    export_table_csv,
    export_to_json,
    export_to_stdout,
    format_results_summary,
    report_progress,
    validate_output_path,
)


def make_forecast(name, values, with_intervals=True):
    index = pd.date_range('2024-01-01', periods=len(values), freq='MS')
    mean = pd.Series(values, index=index, name=name)
    return {
        'model': name,
        'mean': mean,
        'lower': mean - 1.0 if with_intervals else None,
        'upper': mean + 1.0 if with_intervals else None,
        'level': 95,
        'params': {'label': name.upper()},
    }


@pytest.fixture
def forecast_results():
    accuracy = pd.DataFrame(
        {'RMSE': [1.0, 2.0], 'MAE': [0.8, 1.5], 'MAPE': [1.2, np.nan], 'MASE': [0.9, 1.1]},
        index=pd.Index(['naive', 'nnetar'], name='model'),
    )
    return {
        'kind': 'forecast',
        'series_name': 'close',
        'horizon': 2,
        'level': 95,
        'period': 12,
        'train_size': 40,
        'test_size': 2,
        'accuracy': accuracy,
        'forecasts': {
            'naive': make_forecast('naive', [10.0, 10.0]),
            'nnetar': make_forecast('nnetar', [10.5, 11.0], with_intervals=False),
        },
        'errors': {'arima': 'did not converge'},
    }


class TestValidateOutputPath:
    """Test validate_output_path function"""

    def test_validate_output_path_creates_directory(self):
        """Test that validate_output_path creates parent directories"""
        with tempfile.TemporaryDirectory() as tmpdir:
            test_path = Path(tmpdir) / "subdir" / "nested" / "forecast.csv"
            result = validate_output_path(str(test_path))

            assert result is True
            assert test_path.parent.exists()

    def test_validate_output_path_existing_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            assert validate_output_path(str(Path(tmpdir) / "forecast.csv")) is True

    def test_validate_output_path_invalid_path(self):
        """Paths with null bytes cannot be created"""
        assert validate_output_path("\0\0\0\0/forecast.csv") is False


class TestExportForecastsCsv:

    def test_long_format_rows(self, tmp_path, forecast_results):
        path = tmp_path / "forecast.csv"

        export_forecasts_csv(str(path), forecast_results['forecasts'])

        with open(path, newline='') as f:
            rows = list(csv.DictReader(f))

        assert list(rows[0].keys()) == ['model', 'index', 'mean', 'lower', 'upper']
        assert len(rows) == 4
        assert rows[0]['model'] == 'naive'
        assert rows[0]['index'].startswith('2024-01-01')
        assert float(rows[0]['lower']) == pytest.approx(9.0)
        assert rows[2]['model'] == 'nnetar'
        assert rows[2]['lower'] == ''
        assert rows[2]['upper'] == ''

    def test_unwritable_path_raises(self, forecast_results):
        with pytest.raises(FileIOError):
            export_forecasts_csv("\0/forecast.csv", forecast_results['forecasts'])


class TestExportToJson:

    def test_payload_is_serialised(self, tmp_path, forecast_results):
        path = tmp_path / "results.json"

        export_to_json(str(path), forecast_results)

        data = json.loads(path.read_text())
        assert data['timestamp'].endswith('Z')
        assert data['kind'] == 'forecast'
        assert data['forecasts']['naive']['mean'][0] == {'index': '2024-01-01T00:00:00', 'value': 10.0}
        assert data['forecasts']['nnetar']['lower'] is None
        nnetar_row = [row for row in data['accuracy'] if row['model'] == 'nnetar'][0]
        assert nnetar_row['MAPE'] is None

    def test_numpy_values(self, tmp_path):
        path = tmp_path / "values.json"

        export_to_json(str(path), {'n': np.int64(3), 'x': np.float32(0.5), 'flag': np.bool_(True),
                                   'order': (1, 0, 2), 'arr': np.array([1.0, np.inf])})

        data = json.loads(path.read_text())
        assert data['n'] == 3
        assert data['x'] == 0.5
        assert data['flag'] is True
        assert data['order'] == [1, 0, 2]
        assert data['arr'] == [1.0, None]


class TestExportResults:

    def test_forecast_csv(self, tmp_path, forecast_results):
        written = export_results(forecast_results, str(tmp_path / "out.csv"))
        assert Path(written).is_absolute()
        assert Path(written).exists()

    def test_table_kinds(self, tmp_path):
        board = pd.DataFrame({'accuracy': [0.6, 0.5]}, index=pd.Index(['knn', 'baseline'], name='model'))

        written = export_results({'kind': 'classify', 'leaderboard': board}, str(tmp_path / "board.csv"))

        frame = pd.read_csv(written, index_col='model')
        assert frame.index.tolist() == ['knn', 'baseline']

    def test_json(self, tmp_path, forecast_results):
        written = export_results(forecast_results, str(tmp_path / "out.JSON"))
        assert json.loads(Path(written).read_text())['horizon'] == 2

    def test_unsupported_suffix(self, tmp_path, forecast_results):
        with pytest.raises(ValueError, match="Unsupported"):
            export_results(forecast_results, str(tmp_path / "out.xlsx"))

    def test_unknown_kind(self, tmp_path):
        with pytest.raises(ValueError, match="kind"):
            export_results({'kind': 'mystery'}, str(tmp_path / "out.csv"))

    def test_export_table_csv_keeps_index(self, tmp_path):
        path = tmp_path / "table.csv"
        export_table_csv(str(path), pd.DataFrame({'a': [1, 2]}, index=pd.Index(['x', 'y'], name='k')))
        assert path.read_text().splitlines()[0] == 'k,a'


class TestFormatResultsSummary:

    def test_forecast_summary(self, forecast_results):
        summary = format_results_summary(forecast_results)

        assert "FORECAST MODEL COMPARISON" in summary
        assert "Series: close" in summary
        assert "NAIVE" in summary
        assert "FAILED MODELS" in summary
        assert "did not converge" in summary

    def test_backtest_summary(self):
        summary = format_results_summary({
            'kind': 'backtest',
            'summary': {'total_return': 0.25, 'n_trades': 4},
            'trades': pd.DataFrame({'action': ['buy', 'sell']}),
        })

        assert "MOVING-AVERAGE STRATEGY BACKTEST" in summary
        assert "0.250000" in summary
        assert "trades logged" in summary

    def test_decompose_and_classify(self):
        decompose = format_results_summary({
            'kind': 'decompose', 'method': 'stl', 'period': 12,
            'strength': {'trend_strength': 0.9, 'seasonal_strength': 0.7},
        })
        classify = format_results_summary({
            'kind': 'classify', 'train_size': 80, 'test_size': 20, 'sort_metric': 'f1',
            'leaderboard': pd.DataFrame({'f1': [0.55]}, index=pd.Index(['knn'], name='model')),
        })

        assert "seasonal_strength" in decompose
        assert "sorted by f1" in classify

    def test_invalid_results(self):
        with pytest.raises(TypeError):
            format_results_summary(['not', 'a', 'dict'])
        with pytest.raises(ValueError):
            format_results_summary({'kind': 'mystery'})

    def test_export_to_stdout(self, capsys, forecast_results):
        export_to_stdout(forecast_results)
        assert "TEST SET ACCURACY" in capsys.readouterr().out


class TestReportProgress:

    def test_progress_bar(self, capsys):
        report_progress(2, 4, "arima")
        out = capsys.readouterr().out

        assert "50%" in out
        assert "(2/4)" in out
        assert "arima" in out

    def test_completion_ends_line(self, capsys):
        report_progress(4, 4)
        assert capsys.readouterr().out.endswith("\n")

    def test_invalid_values_print_nothing(self, capsys):
        report_progress(0, 4)
        assert capsys.readouterr().out == ""
