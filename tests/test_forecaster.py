"""
Integration Tests for the forecaster CLI

End-to-end runs of the four workflows on synthetic data: argument parsing
and validation, the forecast comparison (benchmarks only, for speed, with
failing families simulated through monkeypatch), decomposition, strategy
backtest, direction classification and main() with file export.
"""

import json

import numpy as np
import pandas as pd
import pytest

import forecaster
from forecaster import (
    create_argument_parser,
    main,
    parse_model_list,
    run_decomposition,
    run_direction_classification,
    run_forecast_comparison,
    run_strategy_backtest,
    validate_arguments,
)
from forecastlab.config_loader import get_default_config, merge_config
from forecastlab.exceptions import ModelConvergenceError


# ============================================================================
# FIXTURES - SYNTHETIC DATA AND CONFIGURATIONS
# ============================================================================

@pytest.fixture
def monthly_series() -> pd.Series:
    """Five years of monthly sales with trend and a yearly cycle."""
    np.random.seed(42)
    n = 60
    t = np.arange(n)
    values = 100 + 0.5 * t + 8 * np.sin(2 * np.pi * t / 12) + np.random.normal(0, 1, n)
    return pd.Series(values, index=pd.date_range('2019-01-01', periods=n, freq='MS'), name='sales')


@pytest.fixture
def daily_prices() -> pd.Series:
    """Three hundred business days of a geometric random walk."""
    np.random.seed(7)
    returns = np.random.normal(0.0005, 0.01, 300)
    return pd.Series(
        100 * np.cumprod(1 + returns), index=pd.bdate_range('2023-01-02', periods=300), name='close',
    )


@pytest.fixture
def monthly_csv(tmp_path, monthly_series) -> str:
    path = tmp_path / 'sales.csv'
    frame = pd.DataFrame({
        'date': monthly_series.index.strftime('%Y-%m-%d'),
        'close': monthly_series.to_numpy(),
    })
    frame.to_csv(path, index=False)
    return str(path)


@pytest.fixture
def fast_config() -> dict:
    return merge_config(get_default_config(), {
        'strategy': {'short_window': 5, 'long_window': 20},
        'classifier': {'models': ['baseline', 'logistic_regression'], 'lags': 3},
    })


# ============================================================================
# ARGUMENTS
# ============================================================================

class TestArguments:

    def test_forecast_arguments(self):
        args = create_argument_parser().parse_args(
            ['forecast', '--ticker', 'AAPL', '--horizon', '12', '--models', 'benchmarks,arima']
        )

        assert args.command == 'forecast'
        assert args.ticker == 'AAPL'
        assert args.horizon == 12
        assert args.interval == '1d'
        assert args.log_level == 'INFO'

    def test_decompose_arguments(self):
        args = create_argument_parser().parse_args(
            ['decompose', '--input', 'x.csv', '--method', 'classical', '--model', 'multiplicative']
        )
        assert args.method == 'classical'
        assert args.model == 'multiplicative'

    @pytest.mark.parametrize("argv", [
        ['backtest'],
        ['backtest', '--input', 'x.csv', '--ticker', 'AAPL'],
        ['forecast', '--ticker', 'AAPL'],
        ['decompose', '--ticker', 'AAPL', '--method', 'x11'],
        ['classify', '--ticker', 'AAPL', '--log-level', 'VERBOSE'],
    ])
    def test_rejected_arguments(self, argv):
        with pytest.raises(SystemExit):
            create_argument_parser().parse_args(argv)

    def test_validate_missing_input(self, tmp_path):
        args = create_argument_parser().parse_args(['backtest', '--input', str(tmp_path / 'none.csv')])
        with pytest.raises(FileNotFoundError):
            validate_arguments(args)

    def test_validate_bad_values(self, monthly_csv):
        parser = create_argument_parser()
        with pytest.raises(ValueError, match="Horizon"):
            validate_arguments(parser.parse_args(['forecast', '--input', monthly_csv, '--horizon', '0']))
        with pytest.raises(ValueError, match="Unknown model"):
            validate_arguments(parser.parse_args(
                ['forecast', '--input', monthly_csv, '--horizon', '3', '--models', 'prophet']
            ))
        with pytest.raises(ValueError, match="Output file"):
            validate_arguments(parser.parse_args(['backtest', '--input', monthly_csv, '--output', 'out.xlsx']))

    def test_parse_model_list(self):
        assert parse_model_list(' ETS, arima ,') == ['ets', 'arima']
        with pytest.raises(ValueError):
            parse_model_list(',')


# ============================================================================
# WORKFLOWS
# ============================================================================

class TestRunForecastComparison:

    def test_benchmarks_only(self, monthly_series):
        results = run_forecast_comparison(monthly_series, 6, get_default_config(), models=['benchmarks'])

        assert results['kind'] == 'forecast'
        assert results['period'] == 12
        assert results['train_size'] == 48
        assert results['test_size'] == 12
        assert set(results['forecasts']) == {'mean', 'naive', 'snaive', 'drift'}
        assert set(results['accuracy'].index) == {'mean', 'naive', 'snaive', 'drift'}
        assert results['accuracy']['RMSE'].is_monotonic_increasing
        assert results['errors'] == {}
        assert results['forecasts']['snaive']['mean'].index[0] == pd.Timestamp('2024-01-01')

    def test_failing_family_is_recorded(self, monthly_series, monkeypatch):
        def failing_select(*args, **kwargs):
            raise ModelConvergenceError("No ETS candidate could be fitted", model_type='ETS')

        monkeypatch.setattr(forecaster, 'select_ets', failing_select)

        results = run_forecast_comparison(monthly_series, 3, models=['benchmarks', 'ets'])

        assert 'ets' in results['errors']
        assert 'ets' not in results['forecasts']
        assert 'ets' not in results['accuracy'].index
        assert 'naive' in results['forecasts']

    def test_every_family_failing(self, monthly_series, monkeypatch):
        def failing_select(*args, **kwargs):
            raise ModelConvergenceError("No ETS candidate could be fitted", model_type='ETS')

        monkeypatch.setattr(forecaster, 'select_ets', failing_select)

        with pytest.raises(ModelConvergenceError):
            run_forecast_comparison(monthly_series, 3, models=['ets'])

    def test_fixed_seasonal_period_from_config(self, monthly_series):
        config = merge_config(get_default_config(), {'data': {'seasonal_period': 4}})

        results = run_forecast_comparison(monthly_series, 2, config, models=['benchmarks'])

        assert results['period'] == 4
        assert results['forecasts']['snaive']['params']['period'] == 4

    def test_invalid_horizon(self, monthly_series):
        with pytest.raises(ValueError):
            run_forecast_comparison(monthly_series, 0, models=['benchmarks'])


class TestOtherWorkflows:

    def test_decomposition(self, monthly_series):
        results = run_decomposition(monthly_series, method='classical')

        assert results['kind'] == 'decompose'
        assert results['period'] == 12
        assert list(results['components'].columns) == ['observed', 'trend', 'seasonal', 'remainder']
        assert results['strength']['seasonal_strength'] > 0.5

    def test_strategy_backtest(self, daily_prices, fast_config):
        results = run_strategy_backtest(daily_prices, fast_config)

        assert results['kind'] == 'backtest'
        assert len(results['backtest']) == 300
        assert results['summary']['n_periods'] == 300
        assert set(results['trades']['action']) <= {'buy', 'sell'}

    def test_direction_classification(self, daily_prices, fast_config):
        results = run_direction_classification(daily_prices, fast_config)

        assert results['kind'] == 'classify'
        assert results['features'] == ['lag_1', 'lag_2', 'lag_3', 'volatility_3']
        assert set(results['leaderboard'].index) == {'baseline', 'logistic_regression'}
        assert results['train_size'] + results['test_size'] == 300 - 3 - 1


# ============================================================================
# MAIN
# ============================================================================

class TestMain:

    def test_forecast_to_json(self, monthly_csv, tmp_path, capsys):
        output = tmp_path / 'results' / 'forecast.json'

        code = main([
            'forecast', '--input', monthly_csv, '--horizon', '4', '--models', 'benchmarks',
            '--output', str(output), '--log-level', 'WARNING',
        ])

        assert code == 0
        data = json.loads(output.read_text())
        assert data['kind'] == 'forecast'
        assert len(data['forecasts']['naive']['mean']) == 4
        assert "FORECAST MODEL COMPARISON" in capsys.readouterr().out

    def test_bare_filename_goes_to_output_directory(self, monthly_csv, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        code = main(['decompose', '--input', monthly_csv, '--output', 'parts.csv', '--log-level', 'ERROR'])

        assert code == 0
        assert (tmp_path / 'output' / 'parts.csv').exists()

    def test_stdout_output_writes_no_file(self, monthly_csv, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        code = main(['decompose', '--input', monthly_csv, '--output', 'stdout', '--log-level', 'ERROR'])

        assert code == 0
        assert not (tmp_path / 'output').exists()

    def test_summary_printed_through_stdout_export(self, monthly_csv, monkeypatch):
        printed = []
        monkeypatch.setattr(forecaster, 'export_to_stdout', lambda results: printed.append(results['kind']))

        code = main(['decompose', '--input', monthly_csv, '--log-level', 'ERROR'])

        assert code == 0
        assert printed == ['decompose']

    def test_missing_file_returns_error(self, tmp_path, capsys):
        code = main(['backtest', '--input', str(tmp_path / 'missing.csv'), '--log-level', 'ERROR'])

        assert code == 1
        assert "ERROR: File Error" in capsys.readouterr().err

    def test_strategy_too_short_returns_error(self, monthly_csv, capsys):
        code = main(['backtest', '--input', monthly_csv, '--log-level', 'ERROR'])

        assert code == 1
        assert "Validation Error" in capsys.readouterr().err
