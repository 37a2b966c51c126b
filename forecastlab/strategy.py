"""
Moving-Average Crossover Strategy

Builds trading signals from a short and a long rolling mean of the price,
backtests them against buy-and-hold, and summarises the result.

A position is held whenever the short moving average is above the long one
(and, in long_short mode, short whenever it is below). Trades are executed on
the bar after the signal changes, so the backtest never uses a price it
could not have seen.

Functions:
    - compute_signals: Moving averages, signal and position changes
    - backtest_strategy: Strategy and market returns, equity curve
    - performance_summary: Return, risk and trading statistics
    - trade_log: One row per buy or sell
"""

from typing import Any, Dict

import numpy as np
import pandas as pd

from forecastlab.config_loader import STRATEGY_MODES
from forecastlab.logger_config import get_logger


logger = get_logger(__name__)


def _check_window(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value <= 0:
        error_msg = f"{name} must be a positive integer, got {value}"
        logger.error(error_msg)
        raise ValueError(error_msg)


def compute_signals(
    prices: pd.Series,
    short_window: int = 40,
    long_window: int = 100,
    mode: str = 'long_only',
) -> pd.DataFrame:
    """
    Compute moving-average crossover signals.

    Args:
        prices (pd.Series): Closing prices in chronological order
        short_window (int): Window of the fast moving average
        long_window (int): Window of the slow moving average
        mode (str): 'long_only' (signal in {0, 1}) or 'long_short' (signal in {-1, 0, 1})

    Returns:
        pd.DataFrame: Columns price, short_mavg, long_mavg, signal, positions.
            positions is the change in signal: +1 enter long, -1 exit,
            +/-2 for a flip between long and short.

    Raises:
        ValueError: On invalid windows, mode, or prices

    Examples:
        >>> signals = compute_signals(prices, short_window=40, long_window=100)
        >>> signals['positions'].abs().sum()
    """
    _check_window('short_window', short_window)
    _check_window('long_window', long_window)

    if short_window >= long_window:
        error_msg = f"short_window ({short_window}) must be less than long_window ({long_window})"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if mode not in STRATEGY_MODES:
        error_msg = f"mode must be one of {list(STRATEGY_MODES)}, got {mode}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if len(prices) <= long_window:
        error_msg = f"Need more than {long_window} prices for long_window={long_window}, got {len(prices)}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if prices.isna().any():
        error_msg = "Prices contain NaN values"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if (prices <= 0).any():
        error_msg = "Prices must be strictly positive"
        logger.error(error_msg)
        raise ValueError(error_msg)

    signals = pd.DataFrame(index=prices.index)
    signals['price'] = prices.astype(np.float64)
    signals['short_mavg'] = signals['price'].rolling(window=short_window, min_periods=short_window).mean()
    signals['long_mavg'] = signals['price'].rolling(window=long_window, min_periods=long_window).mean()

    signal = np.sign(signals['short_mavg'] - signals['long_mavg']).fillna(0.0)
    if mode == 'long_only':
        signal = signal.clip(lower=0.0)
    signals['signal'] = signal

    signals['positions'] = signals['signal'].diff().fillna(0.0)

    logger.info(
        f"Signals computed ({mode}): short={short_window}, long={long_window}, "
        f"{int((signals['positions'] != 0).sum())} position change(s)"
    )
    return signals


def backtest_strategy(
    signals: pd.DataFrame,
    initial_capital: float = 100000.0,
    transaction_cost: float = 0.0,
) -> pd.DataFrame:
    """
    Backtest a signal frame from compute_signals().

    The position held over bar t is the signal at t-1. A proportional
    transaction cost is charged on every unit change of the held position.

    Returns:
        pd.DataFrame: The signal columns plus market_returns, holding,
            strategy_returns, cumulative_market, cumulative_strategy, equity

    Raises:
        ValueError: On missing columns, non-positive capital or negative cost
    """
    missing = [column for column in ('price', 'signal') if column not in signals.columns]
    if missing:
        error_msg = f"Signals frame is missing column(s): {missing}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if initial_capital <= 0:
        error_msg = f"initial_capital must be positive, got {initial_capital}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if transaction_cost < 0:
        error_msg = f"transaction_cost must be non-negative, got {transaction_cost}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    backtest = signals.copy()
    backtest['market_returns'] = backtest['price'].pct_change().fillna(0.0)
    backtest['holding'] = backtest['signal'].shift(1).fillna(0.0)

    turnover = backtest['holding'].diff().fillna(backtest['holding']).abs()
    backtest['strategy_returns'] = (
        backtest['holding'] * backtest['market_returns'] - transaction_cost * turnover
    )

    backtest['cumulative_market'] = (1.0 + backtest['market_returns']).cumprod()
    backtest['cumulative_strategy'] = (1.0 + backtest['strategy_returns']).cumprod()
    backtest['equity'] = initial_capital * backtest['cumulative_strategy']

    logger.info(
        f"Backtest complete: final equity {backtest['equity'].iloc[-1]:.2f} "
        f"from {initial_capital:.2f}"
    )
    return backtest


def performance_summary(backtest: pd.DataFrame, periods_per_year: int = 252) -> Dict[str, Any]:
    """
    Summarise a backtest.

    Sharpe ratio assumes a zero risk-free rate and is 0.0 when the strategy
    returns have no variance. max_drawdown is the largest peak-to-trough
    fall of the equity curve, as a non-positive fraction. n_trades is the
    number of non-zero positions entries, the same rows trade_log reports.
    """
    if periods_per_year <= 0:
        error_msg = f"periods_per_year must be positive, got {periods_per_year}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    returns = backtest['strategy_returns']
    if 'positions' in backtest.columns:
        positions = backtest['positions']
    else:
        positions = backtest['signal'].diff().fillna(0.0)
    cumulative = backtest['cumulative_strategy']
    n_periods = len(backtest)

    total_return = float(cumulative.iloc[-1] - 1.0)
    years = n_periods / periods_per_year
    if years > 0 and cumulative.iloc[-1] > 0:
        annualized_return = float(cumulative.iloc[-1] ** (1.0 / years) - 1.0)
    else:
        annualized_return = -1.0

    volatility = float(returns.std(ddof=1) * np.sqrt(periods_per_year)) if n_periods > 1 else 0.0
    if not np.isfinite(volatility):
        volatility = 0.0
    sharpe = float(returns.mean() * periods_per_year / volatility) if volatility > 0 else 0.0

    drawdown = cumulative / cumulative.cummax() - 1.0

    summary = {
        'total_return': total_return,
        'annualized_return': annualized_return,
        'annualized_volatility': volatility,
        'sharpe_ratio': sharpe,
        'max_drawdown': float(drawdown.min()),
        'n_trades': int((positions != 0).sum()),
        'exposure': float((backtest['holding'] != 0).mean()),
        'market_total_return': float(backtest['cumulative_market'].iloc[-1] - 1.0),
        'n_periods': n_periods,
    }

    logger.info(
        f"Strategy total return {summary['total_return']:.4f} vs market "
        f"{summary['market_total_return']:.4f}, Sharpe {summary['sharpe_ratio']:.3f}"
    )
    return summary


def trade_log(signals: pd.DataFrame) -> pd.DataFrame:
    """One row per signal change: date, price, action ('buy' or 'sell') and size."""
    changes = signals[signals['positions'] != 0]
    log = pd.DataFrame({
        'date': changes.index,
        'price': changes['price'].to_numpy(),
        'action': np.where(changes['positions'] > 0, 'buy', 'sell'),
        'size': changes['positions'].abs().to_numpy(),
    })
    logger.debug(f"Trade log: {len(log)} trade(s)")
    return log
