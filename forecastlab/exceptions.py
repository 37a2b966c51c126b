"""
Custom Exception Classes for the forecastlab package

Every module raises from this hierarchy when a failure has a domain meaning
(bad input data, a model family that cannot be fitted, an export that cannot
be written, an invalid configuration, a download that returned nothing).
Each exception keeps its context as attributes so the CLI can log it and
decide on the exit status.
"""


class DataValidationError(Exception):
    """
    Raised when invalid input data is encountered.

    Triggered by:
    - Frames without any usable price column
    - Series too short for the requested operation
    - Training targets with a single class

    Example: "No numeric price column found in data"
    """

    def __init__(self, error_message, file_path=None, data_shape=None):
        """
        Initialize DataValidationError.

        Args:
            error_message (str): Description of the validation error
            file_path (str, optional): Path to the problematic file
            data_shape (tuple, optional): Shape of the offending data
        """
        super().__init__(error_message)
        self.error_message = error_message
        self.file_path = file_path
        self.data_shape = data_shape

    def __str__(self):
        msg = f"Data Validation Error: {self.error_message}"
        if self.file_path:
            msg += f"\n  File: {self.file_path}"
        if self.data_shape:
            msg += f"\n  Data shape: {self.data_shape}"
        return msg


class ModelConvergenceError(Exception):
    """
    Raised when a model family produces no usable fit.

    Triggered by:
    - ETS optimisation failures
    - Every candidate of an automatic ETS search failing

    Example: "ETS(M,A,M) failed to fit"
    """

    def __init__(self, error_message, model_type=None, parameters=None):
        """
        Initialize ModelConvergenceError.

        Args:
            error_message (str): Description of convergence failure
            model_type (str, optional): Model family (e.g., "ETS", "ARIMA", "NNETAR")
            parameters (tuple/dict, optional): Failed model parameters
        """
        super().__init__(error_message)
        self.error_message = error_message
        self.model_type = model_type
        self.parameters = parameters

    def __str__(self):
        msg = f"Model Convergence Error ({self.model_type}): {self.error_message}"
        if self.parameters:
            msg += f"\n  Parameters: {self.parameters}"
        return msg


class FileIOError(Exception):
    """
    Raised when file reading/writing problems occur.

    Example: "Cannot write to output/forecast.csv - permission denied"
    """

    def __init__(self, error_message, file_path=None, operation=None):
        """
        Initialize FileIOError.

        Args:
            error_message (str): Description of I/O error
            file_path (str, optional): Path to the file causing issues
            operation (str, optional): Operation type ("read" or "write")
        """
        super().__init__(error_message)
        self.error_message = error_message
        self.file_path = file_path
        self.operation = operation

    def __str__(self):
        msg = f"File I/O Error ({self.operation}): {self.error_message}"
        if self.file_path:
            msg += f"\n  File: {self.file_path}"
        return msg


class ConfigurationError(Exception):
    """
    Raised when invalid configuration parameters are provided.

    Triggered by:
    - Parameter values out of allowed range
    - Invalid parameter combinations (short_window >= long_window)
    - Unknown model or metric names

    Example: "strategy.short_window must be smaller than strategy.long_window"
    """

    def __init__(self, error_message, parameter_name=None, invalid_value=None, allowed_range=None):
        """
        Initialize ConfigurationError.

        Args:
            error_message (str): Description of configuration error
            parameter_name (str, optional): Name of invalid parameter
            invalid_value (any, optional): Value that failed validation
            allowed_range (str/tuple, optional): Valid range or allowed values
        """
        super().__init__(error_message)
        self.error_message = error_message
        self.parameter_name = parameter_name
        self.invalid_value = invalid_value
        self.allowed_range = allowed_range

    def __str__(self):
        msg = f"Configuration Error: {self.error_message}"
        if self.parameter_name:
            msg += f"\n  Parameter: {self.parameter_name}"
        if self.invalid_value is not None:
            msg += f"\n  Invalid value: {self.invalid_value}"
        if self.allowed_range:
            msg += f"\n  Allowed range: {self.allowed_range}"
        return msg


class DataDownloadError(Exception):
    """
    Raised when remote market data cannot be retrieved.

    Triggered by:
    - Unknown or delisted tickers (empty history)
    - Network or provider failures inside yfinance

    Example: "No price history returned for ticker 'XXXX'"
    """

    def __init__(self, error_message, ticker=None, source=None):
        """
        Initialize DataDownloadError.

        Args:
            error_message (str): Description of the retrieval failure
            ticker (str, optional): Requested ticker symbol
            source (str, optional): Data provider name
        """
        super().__init__(error_message)
        self.error_message = error_message
        self.ticker = ticker
        self.source = source

    def __str__(self):
        msg = f"Data Download Error: {self.error_message}"
        if self.ticker:
            msg += f"\n  Ticker: {self.ticker}"
        if self.source:
            msg += f"\n  Source: {self.source}"
        return msg
