"""
forecastlab - Time Series Forecasting, Classification and Strategy Backtests

This package turns a forecasting workflow into reusable operations: price
retrieval, benchmark/ETS/ARIMA/NNETAR forecasts compared on a holdout set,
decomposition, a direction classifier leaderboard and a moving-average
crossover backtest.

Modules:
    - data_sources: File loading and yfinance retrieval
    - preprocessing: Returns, splitting, seasonal periods, lagged features
    - decomposition: STL and classical decomposition
    - benchmarks: Mean, naive, seasonal naive and drift forecasts
    - ets_engine: Exponential smoothing state space models
    - arima_engine: ARIMA order selection and forecasting
    - nnetar_engine: Neural network autoregression
    - classifier: Direction-of-move classifiers and leaderboard
    - strategy: Moving-average crossover signals and backtest
    - evaluation: Accuracy measures and validation
    - output_manager: Results export and reporting
"""

from forecastlab.data_sources import load_data, download_prices, extract_price_series
from forecastlab.preprocessing import (
    impute_missing,
    calculate_returns,
    train_test_split,
    infer_seasonal_period,
    future_index,
    create_lagged_features,
)
from forecastlab.decomposition import decompose_series, feature_strength
from forecastlab.benchmarks import (
    mean_forecast,
    naive_forecast,
    seasonal_naive_forecast,
    drift_forecast,
    run_benchmarks,
)
from forecastlab.ets_engine import fit_ets, select_ets, forecast_ets
from forecastlab.arima_engine import (
    check_stationarity,
    find_optimal_params,
    fit_arima,
    extract_residuals,
    ljung_box_test,
    forecast_arima,
)
from forecastlab.nnetar_engine import build_nnetar_model, fit_nnetar, forecast_nnetar
from forecastlab.classifier import build_direction_features, train_classifiers, leaderboard
from forecastlab.strategy import compute_signals, backtest_strategy, performance_summary, trade_log
from forecastlab.evaluation import (
    calculate_rmse,
    calculate_mae,
    calculate_mape,
    calculate_mase,
    accuracy_table,
    walk_forward_validation,
)
from forecastlab.output_manager import export_results, report_progress

__version__ = "1.0.0"
__author__ = "Forecastlab Team"
__all__ = [
    "load_data",
    "download_prices",
    "extract_price_series",
    "impute_missing",
    "calculate_returns",
    "train_test_split",
    "infer_seasonal_period",
    "future_index",
    "create_lagged_features",
    "decompose_series",
    "feature_strength",
    "mean_forecast",
    "naive_forecast",
    "seasonal_naive_forecast",
    "drift_forecast",
    "run_benchmarks",
    "fit_ets",
    "select_ets",
    "forecast_ets",
    "check_stationarity",
    "find_optimal_params",
    "fit_arima",
    "extract_residuals",
    "ljung_box_test",
    "forecast_arima",
    "build_nnetar_model",
    "fit_nnetar",
    "forecast_nnetar",
    "build_direction_features",
    "train_classifiers",
    "leaderboard",
    "compute_signals",
    "backtest_strategy",
    "performance_summary",
    "trade_log",
    "calculate_rmse",
    "calculate_mae",
    "calculate_mape",
    "calculate_mase",
    "accuracy_table",
    "walk_forward_validation",
    "export_results",
    "report_progress",
]
