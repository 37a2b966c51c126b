"""
Data Sources Module for the forecastlab package

Loads price data from local CSV/JSON files or retrieves it from Yahoo Finance,
and turns a loaded frame into a single, date-indexed price series.

Functions:
    - load_data: Load CSV/JSON price data from disk
    - download_prices: Retrieve OHLCV history through yfinance
    - extract_price_series: Select the price column and attach a DatetimeIndex
"""

import json
from pathlib import Path
from typing import Optional

import pandas as pd
import yfinance as yf

from forecastlab.exceptions import DataDownloadError, DataValidationError
from forecastlab.logger_config import get_logger


logger = get_logger(__name__)

SUPPORTED_INTERVALS = ('1d', '1wk', '1mo', '1h')
DATE_COLUMNS = ('date', 'datetime', 'timestamp', 'ds')


def load_data(file_path: str) -> pd.DataFrame:
    """
    Load price data from a CSV or JSON file.

    The format is chosen from the file extension.

    Args:
        file_path (str): Path to the input file (CSV or JSON)

    Returns:
        pd.DataFrame: Loaded data

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file format is not CSV or JSON
        json.JSONDecodeError / pd.errors.ParserError: On malformed content

    Examples:
        >>> data = load_data('data/aapl.csv')
        >>> data = load_data('data/aapl.json')
    """
    file_path = Path(file_path)

    if not file_path.exists():
        error_msg = f"File not found: {file_path}"
        logger.error(error_msg)
        raise FileNotFoundError(error_msg)

    file_ext = file_path.suffix.lower()

    try:
        if file_ext == ".csv":
            logger.info(f"Loading CSV data from {file_path}")
            data = pd.read_csv(file_path)
        elif file_ext == ".json":
            logger.info(f"Loading JSON data from {file_path}")
            with open(file_path, "r", encoding="utf-8") as f:
                json_data = json.load(f)
            data = pd.DataFrame(json_data)
        else:
            error_msg = f"Unsupported file format: {file_ext}. Only CSV and JSON are supported."
            logger.error(error_msg)
            raise ValueError(error_msg)

    except json.JSONDecodeError as e:
        logger.error(f"JSON parsing error in {file_path}: {str(e)}")
        raise
    except pd.errors.ParserError as e:
        logger.error(f"CSV parsing error in {file_path}: {str(e)}")
        raise

    logger.info(f"Data shape: {data.shape}")
    return data


def _normalise_columns(data: pd.DataFrame) -> pd.DataFrame:
    data = data.copy()
    data.columns = [str(col).strip().lower().replace(' ', '_') for col in data.columns]
    return data


def download_prices(
    ticker: str,
    start: Optional[str] = None,
    end: Optional[str] = None,
    interval: str = '1d',
    auto_adjust: bool = True,
) -> pd.DataFrame:
    """
    Retrieve OHLCV history for a ticker from Yahoo Finance.

    Column names are lower-cased ('close', 'volume', 'stock_splits', ...)
    and the timezone is dropped from the index so the frame lines up with
    file-based data.

    Args:
        ticker (str): Ticker symbol, e.g. 'AAPL' or '^GSPC'
        start (str, optional): First date, 'YYYY-MM-DD'
        end (str, optional): Last date (exclusive), 'YYYY-MM-DD'
        interval (str): One of '1d', '1wk', '1mo', '1h'
        auto_adjust (bool): Adjust prices for splits and dividends

    Returns:
        pd.DataFrame: Price history indexed by date

    Raises:
        ValueError: If ticker is empty or interval unsupported
        DataDownloadError: If yfinance fails or returns no rows
    """
    if not isinstance(ticker, str) or not ticker.strip():
        error_msg = "Ticker must be a non-empty string"
        logger.error(error_msg)
        raise ValueError(error_msg)

    if interval not in SUPPORTED_INTERVALS:
        error_msg = f"Unsupported interval '{interval}'. Must be one of {list(SUPPORTED_INTERVALS)}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    ticker = ticker.strip().upper()
    logger.info(
        f"Fetching {interval} history for {ticker} from yfinance "
        f"(start={start or 'max'}, end={end or 'today'})"
    )

    try:
        history_kwargs = {'interval': interval, 'auto_adjust': auto_adjust}
        if start is None and end is None:
            history_kwargs['period'] = 'max'
        else:
            history_kwargs['start'] = start
            history_kwargs['end'] = end
        data = yf.Ticker(ticker).history(**history_kwargs)
    except Exception as e:
        error_msg = f"yfinance request failed: {str(e)}"
        logger.error(error_msg)
        raise DataDownloadError(error_msg, ticker=ticker, source='yfinance') from e

    if data is None or data.empty:
        error_msg = f"No price history returned for ticker '{ticker}'"
        logger.error(error_msg)
        raise DataDownloadError(error_msg, ticker=ticker, source='yfinance')

    data = _normalise_columns(data)
    if isinstance(data.index, pd.DatetimeIndex) and data.index.tz is not None:
        data.index = data.index.tz_localize(None)
    data.index.name = 'date'

    logger.info(
        f"Downloaded {len(data)} rows for {ticker}: "
        f"{data.index[0]} to {data.index[-1]}"
    )
    return data


def extract_price_series(data: pd.DataFrame, column: str = 'close') -> pd.Series:
    """
    Select a price column and return it as a date-indexed series.

    Column matching is case-insensitive. When the requested column is missing
    the adjusted close is tried, then the first numeric column. A date-like
    column ('date', 'datetime', 'timestamp', 'ds') becomes a sorted
    DatetimeIndex.

    Args:
        data (pd.DataFrame): Frame from load_data() or download_prices()
        column (str): Preferred price column

    Returns:
        pd.Series: Price series named after the chosen column

    Raises:
        DataValidationError: If the frame is empty or has no numeric column

    Examples:
        >>> frame = pd.DataFrame({'Date': ['2024-01-02', '2024-01-03'], 'Close': [10.0, 10.5]})
        >>> extract_price_series(frame).index[0]
        Timestamp('2024-01-02 00:00:00')
    """
    if data is None or data.empty:
        raise DataValidationError("Price data is empty", data_shape=getattr(data, 'shape', None))

    frame = _normalise_columns(data)

    date_column = next((c for c in DATE_COLUMNS if c in frame.columns), None)
    if date_column is not None:
        frame[date_column] = pd.to_datetime(frame[date_column])
        frame = frame.set_index(date_column).sort_index()
        frame.index.name = 'date'

    wanted = column.strip().lower().replace(' ', '_')
    numeric_columns = [c for c in frame.columns if pd.api.types.is_numeric_dtype(frame[c])]

    if wanted in frame.columns:
        chosen = wanted
    elif 'adj_close' in frame.columns:
        chosen = 'adj_close'
        logger.warning(f"Column '{column}' not found, using 'adj_close'")
    elif numeric_columns:
        chosen = numeric_columns[0]
        logger.warning(f"Column '{column}' not found, using first numeric column '{chosen}'")
    else:
        error_msg = "No numeric price column found in data"
        logger.error(error_msg)
        raise DataValidationError(error_msg, data_shape=data.shape)

    prices = pd.to_numeric(frame[chosen], errors='coerce')
    prices.name = chosen

    logger.info(f"Extracted price series '{chosen}': {len(prices)} observations")
    return prices
