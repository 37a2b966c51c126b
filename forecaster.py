"""
CLI Entry Point for the forecastlab package

Parses command-line arguments, loads prices from a file or from Yahoo
Finance, runs one workflow and prints (and optionally exports) the results.

Subcommands:
    forecast    Compare benchmark, ETS, ARIMA and NNETAR forecasts on a holdout
                set, then forecast the horizon from the full series
    decompose   STL or classical decomposition with trend/seasonal strength
    backtest    Moving-average crossover strategy against buy-and-hold
    classify    Direction-of-move classifier leaderboard

Usage:
    python forecaster.py forecast --input data/prices.csv --horizon 10
    python forecaster.py forecast --ticker AAPL --start 2020-01-01 --horizon 20 --models benchmarks,arima
    python forecaster.py decompose --input data/monthly.csv --method classical
    python forecaster.py backtest --ticker AAPL --output output/backtest.csv
    python forecaster.py classify --ticker SPY --config config/model_params.yml --output results.json
"""

import argparse
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from forecastlab.arima_engine import find_optimal_params, fit_arima, forecast_arima
from forecastlab.benchmarks import run_benchmarks
from forecastlab.classifier import build_direction_features, leaderboard, train_classifiers
from forecastlab.config_loader import get_default_config, load_config
from forecastlab.data_sources import download_prices, extract_price_series, load_data
from forecastlab.decomposition import decompose_series, feature_strength
from forecastlab.ets_engine import fit_ets, forecast_ets, select_ets
from forecastlab.evaluation import accuracy_table
from forecastlab.exceptions import (
    ConfigurationError,
    DataDownloadError,
    DataValidationError,
    FileIOError,
    ModelConvergenceError,
)
from forecastlab.logger_config import VALID_LEVELS, configure_logging, get_logger, log_exception
from forecastlab.nnetar_engine import fit_nnetar, forecast_nnetar
from forecastlab.output_manager import export_results, export_to_stdout, report_progress
from forecastlab.preprocessing import impute_missing, infer_seasonal_period, train_test_split
from forecastlab.strategy import backtest_strategy, compute_signals, performance_summary, trade_log


logger = get_logger(__name__)

MODEL_FAMILIES = ('benchmarks', 'ets', 'arima', 'nnetar')


def create_argument_parser() -> argparse.ArgumentParser:
    """
    Create and configure CLI argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser
    """
    common = argparse.ArgumentParser(add_help=False)

    source = common.add_mutually_exclusive_group(required=True)
    source.add_argument('--input', type=str, help='Path to input file (CSV or JSON) containing price data')
    source.add_argument('--ticker', type=str, help='Ticker symbol to download from Yahoo Finance (e.g. AAPL)')

    common.add_argument('--start', type=str, default=None, help='Download start date (YYYY-MM-DD)')
    common.add_argument('--end', type=str, default=None, help='Download end date (YYYY-MM-DD)')
    common.add_argument('--interval', type=str, default='1d', help='Download interval: 1d, 1wk, 1mo or 1h')
    common.add_argument('--column', type=str, default=None,
                        help='Price column (default: data.price_column from the configuration)')
    common.add_argument('--config', type=str, default=None,
                        help='Path to configuration file (YAML or JSON). Uses defaults if not specified')
    common.add_argument('--output', type=str, default=None,
                        help='Output file (.csv or .json). Set to "stdout" to only print the summary')
    common.add_argument('--log-level', type=str, default='INFO', choices=list(VALID_LEVELS),
                        help='Logging level (default: INFO)')
    common.add_argument('--log-file', type=str, default=None, help='Optional log file path')

    parser = argparse.ArgumentParser(
        description='Time series forecasting, classification and strategy backtests',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python forecaster.py forecast --input data/prices.csv --horizon 10
  python forecaster.py forecast --ticker AAPL --horizon 20 --models benchmarks,ets,arima
  python forecaster.py decompose --input data/monthly.csv --method stl
  python forecaster.py backtest --ticker AAPL --start 2015-01-01 --output output/backtest.csv
  python forecaster.py classify --ticker SPY --output output/leaderboard.json
        """
    )
    subparsers = parser.add_subparsers(dest='command', required=True)

    forecast = subparsers.add_parser('forecast', parents=[common], help='Compare forecasting models')
    forecast.add_argument('--horizon', type=int, required=True,
                          help='Forecast horizon - number of periods to forecast')
    forecast.add_argument('--models', type=str, default=','.join(MODEL_FAMILIES),
                          help='Comma-separated model families: benchmarks,ets,arima,nnetar')

    decompose = subparsers.add_parser('decompose', parents=[common], help='Decompose the series')
    decompose.add_argument('--method', type=str, default='stl', choices=['stl', 'classical'])
    decompose.add_argument('--model', type=str, default='additive', choices=['additive', 'multiplicative'])

    subparsers.add_parser('backtest', parents=[common], help='Backtest the moving-average crossover strategy')
    subparsers.add_parser('classify', parents=[common], help='Rank direction-of-move classifiers')

    return parser


def validate_arguments(args: argparse.Namespace) -> None:
    """
    Validate CLI arguments.

    Raises:
        FileNotFoundError: If the input file does not exist
        ValueError: If arguments are invalid
    """
    if args.input is not None:
        input_path = Path(args.input)
        if not input_path.exists():
            error_msg = f"Input file not found: {args.input}"
            logger.error(error_msg)
            raise FileNotFoundError(error_msg)

        if input_path.suffix.lower() not in ('.csv', '.json'):
            error_msg = f"Input file must be CSV or JSON, got: {input_path.suffix}"
            logger.error(error_msg)
            raise ValueError(error_msg)

    if args.command == 'forecast':
        if args.horizon <= 0:
            error_msg = f"Horizon must be a positive integer, got: {args.horizon}"
            logger.error(error_msg)
            raise ValueError(error_msg)
        parse_model_list(args.models)

    if args.output not in (None, 'stdout') and Path(args.output).suffix.lower() not in ('.csv', '.json'):
        error_msg = f"Output file must end in .csv or .json, got: {args.output}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    logger.info("All CLI arguments validated successfully")


def parse_model_list(models: str) -> list:
    """Split a comma-separated model family list and reject unknown names."""
    names = [name.strip().lower() for name in models.split(',') if name.strip()]
    unknown = [name for name in names if name not in MODEL_FAMILIES]
    if not names or unknown:
        error_msg = f"Unknown model families {unknown or models}. Choose from {list(MODEL_FAMILIES)}"
        logger.error(error_msg)
        raise ValueError(error_msg)
    return names


def load_price_series(args: argparse.Namespace, config: Dict[str, Any]) -> pd.Series:
    """Load prices from --input or download them for --ticker."""
    column = args.column or config['data']['price_column']

    if args.ticker is not None:
        data = download_prices(args.ticker, start=args.start, end=args.end, interval=args.interval)
    else:
        data = load_data(args.input)
    logger.info(f"Data loaded successfully: shape={data.shape}")

    prices = impute_missing(extract_price_series(data, column))
    if args.ticker is not None and prices.name:
        prices.name = f"{args.ticker} {prices.name}"
    return prices


def _seasonal_period(series: pd.Series, config: Dict[str, Any]) -> int:
    period = config['data'].get('seasonal_period')
    return int(period) if period else infer_seasonal_period(series)


def _forecast_family(
    family: str,
    series: pd.Series,
    horizon: int,
    config: Dict[str, Any],
    period: int,
    level: int,
) -> Dict[str, Dict[str, Any]]:
    """Fit one model family on `series` and forecast `horizon` periods."""
    seasonal_period = period if period >= 2 else None

    if family == 'benchmarks':
        return run_benchmarks(series, horizon, config['benchmarks']['methods'], seasonal_period, level)

    if family == 'ets':
        ets_config = config['ets']
        if ets_config['auto']:
            results, spec = select_ets(series, seasonal_period, ets_config['information_criterion'])
        else:
            spec = {key: ets_config[key] for key in ('error', 'trend', 'damped', 'seasonal')}
            results = fit_ets(series, period=seasonal_period, **spec)
        return {'ets': forecast_ets(results, series, horizon, level, spec)}

    if family == 'arima':
        arima_config = config['arima']
        order, seasonal_order = find_optimal_params(
            series,
            max_p=arima_config['max_p'],
            max_d=arima_config['max_d'],
            max_q=arima_config['max_q'],
            information_criterion=arima_config['information_criterion'],
            seasonal=arima_config['seasonal'],
            period=seasonal_period,
            max_P=arima_config['max_P'],
            max_D=arima_config['max_D'],
            max_Q=arima_config['max_Q'],
        )
        results = fit_arima(series, order, seasonal_order)
        return {'arima': forecast_arima(results, series, horizon, level, order, seasonal_order)}

    if family == 'nnetar':
        nnetar_config = config['nnetar']
        model = fit_nnetar(series, nnetar_config, period=period)
        return {'nnetar': forecast_nnetar(
            model, series, horizon, level,
            n_simulations=nnetar_config['n_simulations'],
            seed=nnetar_config['seed'],
        )}

    error_msg = f"Unknown model family '{family}'"
    logger.error(error_msg)
    raise ValueError(error_msg)


def run_forecast_comparison(
    series: pd.Series,
    horizon: int,
    config: Optional[Dict[str, Any]] = None,
    models: Iterable[str] = MODEL_FAMILIES,
) -> Dict[str, Any]:
    """
    Compare forecasting model families on a holdout set and forecast ahead.

    Process:
        Split chronologically (split.test_size) → fit every family on the
        training part → score its forecasts of the test part → refit on the
        full series → forecast `horizon` periods.

    A family that fails is logged and recorded in 'errors'; the others go on.

    Args:
        series (pd.Series): Observations (missing values are imputed)
        horizon (int): Number of periods to forecast from the full series
        config (dict, optional): Full configuration; defaults if None
        models (Iterable[str]): Families among benchmarks, ets, arima, nnetar

    Returns:
        dict: kind 'forecast' with series_name, horizon, level, period,
            train_size, test_size, accuracy (DataFrame), forecasts (name ->
            forecast dict) and errors (family -> message)

    Raises:
        ValueError: If horizon or model names are invalid
        ModelConvergenceError: If every family failed
    """
    if config is None:
        config = get_default_config()
        logger.info("Using default configuration")

    if not isinstance(horizon, int) or horizon <= 0:
        error_msg = f"horizon must be a positive integer, got {horizon}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    families = parse_model_list(','.join(models))
    series = impute_missing(series)
    period = _seasonal_period(series, config)
    level = config['output']['level']

    logger.info("=" * 80)
    logger.info(f"STARTING FORECAST COMPARISON: families={families}, horizon={horizon}, period={period}")
    logger.info("=" * 80)

    train, test = train_test_split(series, config['split']['test_size'])

    holdout = {}
    forecasts = {}
    errors = {}

    for step, family in enumerate(families, start=1):
        logger.info("\n" + "-" * 80)
        logger.info(f"MODEL FAMILY {step}/{len(families)}: {family.upper()}")
        logger.info("-" * 80)
        try:
            holdout.update(_forecast_family(family, train, len(test), config, period, level))
            forecasts.update(_forecast_family(family, series, horizon, config, period, level))
        except Exception as e:
            logger.error(f"{family} failed: {str(e)}")
            log_exception(logger, e)
            errors[family] = str(e)
            for name in [name for name in holdout if name not in forecasts]:
                del holdout[name]
        report_progress(step, len(families), family)

    if not forecasts:
        error_msg = f"Every model family failed: {errors}"
        logger.error(error_msg)
        raise ModelConvergenceError(error_msg, model_type=','.join(families))

    accuracy = accuracy_table(holdout, test, train, period=max(1, period))

    logger.info("\n" + "=" * 80)
    logger.info(f"FORECAST COMPARISON COMPLETED. Best on holdout: {accuracy.index[0]}")
    logger.info("=" * 80)

    return {
        'kind': 'forecast',
        'series_name': series.name,
        'horizon': horizon,
        'level': level,
        'period': period,
        'train_size': len(train),
        'test_size': len(test),
        'accuracy': accuracy,
        'forecasts': forecasts,
        'errors': errors,
    }


def run_decomposition(
    series: pd.Series,
    config: Optional[Dict[str, Any]] = None,
    method: str = 'stl',
    model: str = 'additive',
) -> Dict[str, Any]:
    """Decompose the series and measure trend and seasonal strength."""
    config = config or get_default_config()
    series = impute_missing(series)
    period = _seasonal_period(series, config)

    components = decompose_series(series, period=period, method=method, model=model)
    strength = feature_strength(components)

    return {
        'kind': 'decompose',
        'series_name': series.name,
        'method': method,
        'model': model,
        'period': period,
        'components': components,
        'strength': strength,
    }


def run_strategy_backtest(prices: pd.Series, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Compute crossover signals, backtest them and summarise performance."""
    config = config or get_default_config()
    strategy_config = config['strategy']

    signals = compute_signals(
        prices,
        short_window=strategy_config['short_window'],
        long_window=strategy_config['long_window'],
        mode=strategy_config['mode'],
    )
    backtest = backtest_strategy(
        signals,
        initial_capital=strategy_config['initial_capital'],
        transaction_cost=strategy_config['transaction_cost'],
    )

    return {
        'kind': 'backtest',
        'series_name': prices.name,
        'backtest': backtest,
        'summary': performance_summary(backtest, strategy_config['periods_per_year']),
        'trades': trade_log(signals),
    }


def run_direction_classification(
    prices: pd.Series, config: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """
    Train direction-of-move classifiers on the earlier part of the history
    and rank them on the later part.
    """
    config = config or get_default_config()
    classifier_config = config['classifier']

    features = build_direction_features(prices, lags=classifier_config['lags'])
    train, test = train_test_split(features, classifier_config['test_size'])

    X_train, y_train = train.drop(columns='direction'), train['direction']
    X_test, y_test = test.drop(columns='direction'), test['direction']

    models = train_classifiers(X_train, y_train, classifier_config['models'], classifier_config)
    board = leaderboard(models, X_test, y_test, sort_metric=classifier_config['sort_metric'])

    return {
        'kind': 'classify',
        'series_name': prices.name,
        'train_size': len(train),
        'test_size': len(test),
        'features': list(X_train.columns),
        'sort_metric': classifier_config['sort_metric'],
        'leaderboard': board,
    }


def main(argv: Optional[list] = None) -> int:
    """
    Main entry point for the CLI application.

    Returns:
        int: 0 on success, 1 on any handled error
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        configure_logging(log_level=args.log_level, log_file=args.log_file)

        logger.info(f"Command: {args.command}")
        logger.info(f"  Source: {args.input or args.ticker}")
        logger.info(f"  Output: {args.output if args.output else 'summary only'}")
        logger.info(f"  Config: {args.config if args.config else 'default'}")

        validate_arguments(args)
        config = load_config(args.config)
        prices = load_price_series(args, config)

        if args.command == 'forecast':
            results = run_forecast_comparison(prices, args.horizon, config, parse_model_list(args.models))
        elif args.command == 'decompose':
            results = run_decomposition(prices, config, method=args.method, model=args.model)
        elif args.command == 'backtest':
            results = run_strategy_backtest(prices, config)
        else:
            results = run_direction_classification(prices, config)

        print()
        export_to_stdout(results)

        if args.output and args.output != 'stdout':
            output_path = Path(args.output)
            if output_path.parent == Path('.'):
                output_path = Path(config['output']['directory']) / output_path
            exported_path = export_results(results, str(output_path))
            print(f"\nResults saved to: {exported_path}")

        logger.info("PIPELINE COMPLETED SUCCESSFULLY")
        return 0

    except FileNotFoundError as e:
        error_msg = f"File Error: {str(e)}"
    except ConfigurationError as e:
        error_msg = f"Configuration Error: {str(e)}"
    except DataDownloadError as e:
        error_msg = f"Download Error: {str(e)}"
    except (DataValidationError, ModelConvergenceError) as e:
        error_msg = f"Data/Model Error: {str(e)}"
    except FileIOError as e:
        error_msg = f"Export Error: {str(e)}"
    except ValueError as e:
        error_msg = f"Validation Error: {str(e)}"
    except Exception as e:
        error_msg = f"Unexpected Error: {str(e)}"
        log_exception(logger, e)

    logger.error(error_msg)
    print(f"ERROR: {error_msg}", file=sys.stderr)
    return 1


if __name__ == '__main__':
    sys.exit(main())
