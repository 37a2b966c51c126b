"""
Configuration System Module - Centralized Model Parameter Management

Loads, validates and merges the parameters of every chapter of the
forecasting workflow from a YAML file (or JSON, chosen by suffix) and CLI
overrides.

Sections:
- data: price column and seasonal period
- split: holdout size for model comparison
- benchmarks: which fpp3 benchmark methods to run
- ets: exponential smoothing specification or automatic selection
- arima: grid search bounds and information criterion
- nnetar: neural network autoregression settings
- classifier: direction classifier leaderboard
- strategy: moving-average crossover backtest
- output: interval level and output directory

Usage Examples:
    config = load_config()
    config = load_config('config/custom_params.yml')
    merged = merge_config(config, {'strategy': {'short_window': 20}})
"""

import copy
import json
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

from forecastlab.exceptions import ConfigurationError
from forecastlab.logger_config import get_logger


logger = get_logger(__name__)

DEFAULT_CONFIG_PATH = Path('config/model_params.yml')

BENCHMARK_METHODS = ('mean', 'naive', 'snaive', 'drift')
CLASSIFIER_MODELS = ('baseline', 'logistic_regression', 'random_forest', 'gradient_boosting', 'knn')
CLASSIFIER_METRICS = ('accuracy', 'precision', 'recall', 'f1', 'roc_auc')
STRATEGY_MODES = ('long_only', 'long_short')


def get_default_config() -> Dict[str, Any]:
    """
    Return hardcoded default configuration.

    Used as the base every loaded file is merged over, and as the fallback
    when no file exists or parsing fails.

    Examples:
        >>> config = get_default_config()
        >>> config['strategy']['short_window']
        40
        >>> config['arima']['max_p']
        3
    """
    default_config = {
        'data': {
            'price_column': 'close',
            'seasonal_period': None,
        },
        'split': {
            'test_size': 0.2,
        },
        'benchmarks': {
            'methods': list(BENCHMARK_METHODS),
        },
        'ets': {
            'auto': True,
            'error': 'add',
            'trend': None,
            'damped': False,
            'seasonal': None,
            'information_criterion': 'aicc',
        },
        'arima': {
            'seasonal': False,
            'max_p': 3,
            'max_d': 2,
            'max_q': 3,
            'max_P': 1,
            'max_D': 1,
            'max_Q': 1,
            'information_criterion': 'aic',
        },
        'nnetar': {
            'p': None,
            'P': 1,
            'size': None,
            'repeats': 20,
            'epochs': 200,
            'batch_size': 32,
            'learning_rate': 0.01,
            'decay': 0.0,
            'early_stopping_patience': 20,
            'max_lag': 10,
            'n_simulations': 100,
            'seed': 42,
        },
        'classifier': {
            'lags': 5,
            'test_size': 0.2,
            'models': list(CLASSIFIER_MODELS),
            'n_estimators': 200,
            'sort_metric': 'accuracy',
            'random_state': 42,
        },
        'strategy': {
            'short_window': 40,
            'long_window': 100,
            'mode': 'long_only',
            'initial_capital': 100000.0,
            'transaction_cost': 0.0,
            'periods_per_year': 252,
        },
        'output': {
            'level': 95,
            'directory': 'output',
        },
    }

    logger.debug("Default configuration created")
    return default_config


def _read_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Parse a YAML or JSON config file; None when parsing fails."""
    try:
        logger.info(f"Loading configuration from {config_path}")
        with open(config_path, 'r', encoding='utf-8') as f:
            if config_path.suffix.lower() == '.json':
                loaded = json.load(f)
            else:
                loaded = yaml.safe_load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        logger.warning(
            f"Parsing error in {config_path}: {str(e)}. "
            "Falling back to default configuration."
        )
        return None
    except OSError as e:
        logger.warning(
            f"Error reading configuration from {config_path}: {str(e)}. "
            "Falling back to default configuration."
        )
        return None

    if loaded is None:
        logger.warning(f"Configuration file {config_path} is empty. Using defaults.")
        return {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(
            f"Configuration root must be a mapping, got {type(loaded).__name__}",
            parameter_name=str(config_path),
        )

    logger.info(f"Successfully loaded configuration from {config_path}")
    return loaded


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from a YAML/JSON file merged over the defaults.

    - No path: config/model_params.yml if it exists, else defaults (debug log)
    - Explicit path that does not exist: warning, defaults
    - Parse failures: warning, defaults
    - The result is always validated

    Args:
        config_path (str, optional): Path to the configuration file.

    Returns:
        dict: Complete validated configuration dictionary.

    Raises:
        ConfigurationError: If the resulting configuration is invalid.

    Examples:
        >>> config = load_config('config/missing_file.yml')
        >>> config['strategy']['long_window']
        100
    """
    explicit = config_path is not None
    path = Path(config_path) if explicit else DEFAULT_CONFIG_PATH

    config = get_default_config()

    if path.exists():
        loaded = _read_config_file(path)
        if loaded:
            _deep_merge(config, loaded)
    elif explicit:
        logger.warning(f"Configuration file not found: {path}. Using default configuration.")
    else:
        logger.debug(f"Default config file not found at {path}. Using hardcoded defaults.")

    try:
        validate_config(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {str(e)}")
        raise

    logger.info("Configuration loaded and validated successfully")
    return config


def _require_int(section, key, value, minimum=1, maximum=None):
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum or (
        maximum is not None and value > maximum
    ):
        upper = maximum if maximum is not None else '∞'
        raise ConfigurationError(
            f"{section}.{key} must be an integer in [{minimum}, {upper}], got {value}",
            parameter_name=f"{section}.{key}",
            invalid_value=value,
            allowed_range=f"[{minimum}, {upper}]",
        )


def _require_number(section, key, value, minimum, maximum, inclusive_min=True):
    ok = isinstance(value, (int, float)) and not isinstance(value, bool)
    if ok:
        ok = (value >= minimum if inclusive_min else value > minimum) and value <= maximum
    if not ok:
        bracket = '[' if inclusive_min else '('
        raise ConfigurationError(
            f"{section}.{key} must be in {bracket}{minimum}, {maximum}], got {value}",
            parameter_name=f"{section}.{key}",
            invalid_value=value,
            allowed_range=f"{bracket}{minimum}, {maximum}]",
        )


def _require_choice(section, key, value, choices):
    if value not in choices:
        raise ConfigurationError(
            f"{section}.{key} must be one of {list(choices)}, got {value}",
            parameter_name=f"{section}.{key}",
            invalid_value=value,
            allowed_range=str(list(choices)),
        )


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate configuration schema and parameter ranges.

    Args:
        config (dict): Configuration dictionary to validate.

    Returns:
        bool: True if configuration is valid.

    Raises:
        ConfigurationError: If validation fails, naming the offending parameter.

    Examples:
        >>> bad = get_default_config()
        >>> bad['strategy']['short_window'] = 200
        >>> validate_config(bad)
        Traceback (most recent call last):
        ...
        ConfigurationError: strategy.short_window must be smaller than strategy.long_window
    """
    logger.debug("Validating configuration...")

    required_sections = [
        'data', 'split', 'benchmarks', 'ets', 'arima', 'nnetar',
        'classifier', 'strategy', 'output',
    ]
    for section in required_sections:
        if not isinstance(config.get(section), dict):
            raise ConfigurationError(
                f"Missing required section: {section}", parameter_name=section
            )

    # ===== Data =====
    data = config['data']
    if not isinstance(data.get('price_column'), str) or not data['price_column']:
        raise ConfigurationError(
            "data.price_column must be a non-empty string",
            parameter_name='data.price_column',
            invalid_value=data.get('price_column'),
        )
    if data.get('seasonal_period') is not None:
        _require_int('data', 'seasonal_period', data['seasonal_period'], minimum=1)

    # ===== Split =====
    _require_number('split', 'test_size', config['split'].get('test_size'), 0.05, 0.5)

    # ===== Benchmarks =====
    methods = config['benchmarks'].get('methods')
    if not isinstance(methods, list) or not methods:
        raise ConfigurationError(
            "benchmarks.methods must be a non-empty list",
            parameter_name='benchmarks.methods',
            invalid_value=methods,
        )
    for method in methods:
        _require_choice('benchmarks', 'methods', method, BENCHMARK_METHODS)

    # ===== ETS =====
    ets = config['ets']
    if not isinstance(ets.get('auto'), bool):
        raise ConfigurationError("ets.auto must be boolean", parameter_name='ets.auto',
                                 invalid_value=ets.get('auto'))
    _require_choice('ets', 'error', ets.get('error'), ('add', 'mul'))
    _require_choice('ets', 'trend', ets.get('trend'), (None, 'add', 'mul'))
    _require_choice('ets', 'seasonal', ets.get('seasonal'), (None, 'add', 'mul'))
    if not isinstance(ets.get('damped'), bool):
        raise ConfigurationError("ets.damped must be boolean", parameter_name='ets.damped',
                                 invalid_value=ets.get('damped'))
    if ets['damped'] and ets.get('trend') is None:
        raise ConfigurationError(
            "ets.damped requires a trend component",
            parameter_name='ets.damped',
            invalid_value=True,
        )
    _require_choice('ets', 'information_criterion', ets.get('information_criterion'),
                    ('aic', 'aicc', 'bic'))

    # ===== ARIMA =====
    arima = config['arima']
    for key in ('max_p', 'max_q'):
        _require_int('arima', key, arima.get(key), minimum=0, maximum=10)
    _require_int('arima', 'max_d', arima.get('max_d'), minimum=0, maximum=2)
    for key in ('max_P', 'max_D', 'max_Q'):
        _require_int('arima', key, arima.get(key), minimum=0, maximum=2)
    if not isinstance(arima.get('seasonal'), bool):
        raise ConfigurationError("arima.seasonal must be boolean", parameter_name='arima.seasonal',
                                 invalid_value=arima.get('seasonal'))
    _require_choice('arima', 'information_criterion', arima.get('information_criterion'),
                    ('aic', 'aicc', 'bic'))

    # ===== NNETAR =====
    nnetar = config['nnetar']
    if nnetar.get('p') is not None:
        _require_int('nnetar', 'p', nnetar['p'], minimum=1)
    _require_int('nnetar', 'P', nnetar.get('P'), minimum=0)
    if nnetar.get('size') is not None:
        _require_int('nnetar', 'size', nnetar['size'], minimum=1)
    for key in ('repeats', 'epochs', 'batch_size', 'early_stopping_patience', 'max_lag'):
        _require_int('nnetar', key, nnetar.get(key), minimum=1)
    _require_int('nnetar', 'n_simulations', nnetar.get('n_simulations'), minimum=0)
    _require_number('nnetar', 'learning_rate', nnetar.get('learning_rate'), 0.0, 1.0,
                    inclusive_min=False)
    _require_number('nnetar', 'decay', nnetar.get('decay'), 0.0, 1.0)
    if nnetar.get('seed') is not None:
        _require_int('nnetar', 'seed', nnetar['seed'], minimum=0)

    # ===== Classifier =====
    classifier = config['classifier']
    _require_int('classifier', 'lags', classifier.get('lags'), minimum=1, maximum=60)
    _require_number('classifier', 'test_size', classifier.get('test_size'), 0.05, 0.5)
    models = classifier.get('models')
    if not isinstance(models, list) or not models:
        raise ConfigurationError(
            "classifier.models must be a non-empty list",
            parameter_name='classifier.models',
            invalid_value=models,
        )
    for name in models:
        _require_choice('classifier', 'models', name, CLASSIFIER_MODELS)
    _require_int('classifier', 'n_estimators', classifier.get('n_estimators'), minimum=1)
    _require_choice('classifier', 'sort_metric', classifier.get('sort_metric'), CLASSIFIER_METRICS)
    _require_int('classifier', 'random_state', classifier.get('random_state'), minimum=0)

    # ===== Strategy =====
    strategy = config['strategy']
    _require_int('strategy', 'short_window', strategy.get('short_window'), minimum=1)
    _require_int('strategy', 'long_window', strategy.get('long_window'), minimum=2)
    if strategy['short_window'] >= strategy['long_window']:
        raise ConfigurationError(
            "strategy.short_window must be smaller than strategy.long_window",
            parameter_name='strategy.short_window',
            invalid_value=strategy['short_window'],
            allowed_range=f"[1, {strategy['long_window'] - 1}]",
        )
    _require_choice('strategy', 'mode', strategy.get('mode'), STRATEGY_MODES)
    _require_number('strategy', 'initial_capital', strategy.get('initial_capital'), 0.0,
                    float('inf'), inclusive_min=False)
    _require_number('strategy', 'transaction_cost', strategy.get('transaction_cost'), 0.0, 0.1)
    _require_int('strategy', 'periods_per_year', strategy.get('periods_per_year'), minimum=1)

    # ===== Output =====
    output = config['output']
    _require_int('output', 'level', output.get('level'), minimum=50, maximum=99)
    if not isinstance(output.get('directory'), str) or not output['directory']:
        raise ConfigurationError(
            "output.directory must be a non-empty string",
            parameter_name='output.directory',
            invalid_value=output.get('directory'),
        )

    logger.debug(
        f"Config summary: MA({strategy['short_window']},{strategy['long_window']}) {strategy['mode']}, "
        f"ARIMA p≤{arima['max_p']} d≤{arima['max_d']} q≤{arima['max_q']}, "
        f"NNETAR repeats={nnetar['repeats']}, level={output['level']}%"
    )
    return True


def _deep_merge(target: Dict, source: Dict, path: str = "") -> None:
    """Recursively merge source into target, logging every override."""
    for key, value in source.items():
        current_path = f"{path}.{key}" if path else key

        if key not in target:
            logger.warning(f"Override key not in base config: {current_path}")
            target[key] = value
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_merge(target[key], value, current_path)
        else:
            old_value = target[key]
            target[key] = value
            if old_value != value:
                logger.info(f"Override config: {current_path} = {value} (was {old_value})")


def merge_config(
    base_config: Dict[str, Any],
    overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Merge configuration overrides into a copy of the base configuration.

    Nested dictionaries are merged key by key; scalars and lists are replaced.
    The merged result is validated before it is returned and the base is
    never modified.

    Args:
        base_config (dict): Base configuration dictionary.
        overrides (dict): Nested override parameters, e.g. {'nnetar': {'repeats': 5}}.

    Returns:
        dict: Merged configuration.

    Raises:
        ConfigurationError: If the merged configuration fails validation.
    """
    logger.debug("Merging configuration overrides...")

    merged = copy.deepcopy(base_config)
    if overrides:
        _deep_merge(merged, overrides)

    try:
        validate_config(merged)
    except ConfigurationError as e:
        logger.error(f"Merged configuration validation failed: {str(e)}")
        raise

    logger.info("Merged configuration validated successfully")
    return merged


def config_to_dict(config: Dict[str, Any]) -> Dict[str, str]:
    """
    Flatten nested configuration to dot-separated keys with string values.

    Examples:
        >>> flat = config_to_dict(get_default_config())
        >>> flat['strategy.mode']
        'long_only'
        >>> flat['ets.auto']
        'true'
    """
    flat = {}

    def flatten(d: Dict, parent_key: str = "") -> None:
        for key, value in d.items():
            new_key = f"{parent_key}.{key}" if parent_key else key
            if isinstance(value, dict):
                flatten(value, new_key)
            elif isinstance(value, bool):
                flat[new_key] = str(value).lower()
            elif isinstance(value, list):
                flat[new_key] = ','.join(str(v) for v in value)
            else:
                flat[new_key] = str(value)

    flatten(config)
    logger.debug(f"Configuration flattened to {len(flat)} keys")
    return flat
