"""
Direction Classifier Module for the forecastlab package

Predicts whether the next period's return is positive from lagged returns,
trains several scikit-learn classifiers and ranks them on a leaderboard
against a majority-class baseline.

Functions:
    - build_direction_features: Lagged return features and next-period direction target
    - make_classifier: Estimator factory by name
    - train_classifiers: Fit a set of named classifiers
    - evaluate_classifier: Accuracy, precision, recall, F1 and ROC AUC
    - leaderboard: Ranked comparison table
"""

from typing import Any, Dict, Iterable, Optional

import numpy as np
import pandas as pd
from sklearn.dummy import DummyClassifier
from sklearn.ensemble import GradientBoostingClassifier, RandomForestClassifier
from sklearn.linear_model import LogisticRegression
from sklearn.metrics import accuracy_score, f1_score, precision_score, recall_score, roc_auc_score
from sklearn.neighbors import KNeighborsClassifier
from sklearn.pipeline import make_pipeline
from sklearn.preprocessing import StandardScaler

from forecastlab.config_loader import CLASSIFIER_METRICS as METRICS
from forecastlab.exceptions import ConfigurationError, DataValidationError
from forecastlab.logger_config import get_logger
from forecastlab.preprocessing import calculate_returns


logger = get_logger(__name__)


def build_direction_features(prices: pd.Series, lags: int = 5) -> pd.DataFrame:
    """
    Build lagged-return features and the next-period direction target.

    Columns:
        lag_1..lag_k     returns at t, t-1, ..., t-k+1 (known at the close of t)
        volatility_k     rolling standard deviation of the last k returns
        direction        1 if the return at t+1 is positive, else 0

    Rows with incomplete features and the last row (whose next return is
    unknown) are dropped.

    Raises:
        ValueError: If lags < 1
        DataValidationError: If fewer than 10 usable rows remain
    """
    if isinstance(lags, bool) or not isinstance(lags, (int, np.integer)) or lags < 1:
        error_msg = f"lags must be a positive integer, got {lags}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    returns = calculate_returns(prices)

    features = pd.DataFrame(index=prices.index)
    for lag in range(1, lags + 1):
        features[f'lag_{lag}'] = returns.shift(lag - 1)
    features[f'volatility_{lags}'] = returns.rolling(lags).std()

    next_return = returns.shift(-1)
    features['direction'] = (next_return > 0).astype(int)

    features = features[next_return.notna()].dropna()

    if len(features) < 10:
        error_msg = f"Only {len(features)} usable rows for direction classification, need at least 10"
        logger.error(error_msg)
        raise DataValidationError(error_msg, data_shape=features.shape)

    logger.info(
        f"Direction features built: {len(features)} rows, {lags} lags, "
        f"up ratio {features['direction'].mean():.3f}"
    )
    return features


def make_classifier(name: str, config: Optional[Dict[str, Any]] = None):
    """
    Create an unfitted classifier by name.

    Names: baseline, logistic_regression, random_forest, gradient_boosting, knn.

    Raises:
        ConfigurationError: On an unknown name
    """
    config = config or {}
    random_state = config.get('random_state', 42)

    if name == 'baseline':
        return DummyClassifier(strategy='most_frequent')
    if name == 'logistic_regression':
        return make_pipeline(StandardScaler(), LogisticRegression(max_iter=1000, random_state=random_state))
    if name == 'random_forest':
        return RandomForestClassifier(
            n_estimators=config.get('n_estimators', 200),
            min_samples_leaf=5,
            random_state=random_state,
            n_jobs=-1,
        )
    if name == 'gradient_boosting':
        return GradientBoostingClassifier(random_state=random_state)
    if name == 'knn':
        return make_pipeline(StandardScaler(), KNeighborsClassifier(n_neighbors=15))

    error_msg = f"Unknown classifier '{name}'"
    logger.error(error_msg)
    raise ConfigurationError(error_msg, parameter_name='classifier.models', invalid_value=name)


def train_classifiers(
    X_train: pd.DataFrame,
    y_train: pd.Series,
    names: Iterable[str],
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Fit each named classifier on the training data.

    KNN needs at least as many rows as neighbours; when the training set is
    smaller the neighbour count is reduced.

    Raises:
        DataValidationError: If the training target holds a single class
    """
    if pd.Series(y_train).nunique() < 2:
        error_msg = "Training target contains a single class"
        logger.error(error_msg)
        raise DataValidationError(error_msg, data_shape=getattr(X_train, 'shape', None))

    models = {}
    for name in names:
        estimator = make_classifier(name, config)
        if name == 'knn':
            estimator.set_params(kneighborsclassifier__n_neighbors=min(15, len(X_train)))
        logger.info(f"Training {name} on {len(X_train)} samples")
        estimator.fit(X_train, y_train)
        models[name] = estimator

    logger.info(f"Trained {len(models)} classifier(s)")
    return models


def evaluate_classifier(model, X_test: pd.DataFrame, y_test: pd.Series) -> Dict[str, float]:
    """
    Score a fitted classifier on held-out data.

    ROC AUC is NaN when the test target holds a single class or the model
    exposes no probabilities.
    """
    y_true = np.asarray(y_test)
    y_pred = model.predict(X_test)

    scores = {
        'accuracy': float(accuracy_score(y_true, y_pred)),
        'precision': float(precision_score(y_true, y_pred, zero_division=0)),
        'recall': float(recall_score(y_true, y_pred, zero_division=0)),
        'f1': float(f1_score(y_true, y_pred, zero_division=0)),
        'roc_auc': float('nan'),
    }

    if len(np.unique(y_true)) == 2 and hasattr(model, 'predict_proba'):
        probabilities = model.predict_proba(X_test)
        classes = list(model.classes_)
        if 1 in classes:
            scores['roc_auc'] = float(roc_auc_score(y_true, probabilities[:, classes.index(1)]))

    return scores


def leaderboard(
    models: Dict[str, Any],
    X_test: pd.DataFrame,
    y_test: pd.Series,
    sort_metric: str = 'accuracy',
) -> pd.DataFrame:
    """
    Rank fitted classifiers on held-out data, best first.

    Returns:
        pd.DataFrame: One row per model (index 'model'), one column per metric

    Raises:
        ValueError: On an unknown sort metric
    """
    if sort_metric not in METRICS:
        error_msg = f"sort_metric must be one of {list(METRICS)}, got {sort_metric}"
        logger.error(error_msg)
        raise ValueError(error_msg)

    rows = []
    for name, model in models.items():
        scores = evaluate_classifier(model, X_test, y_test)
        rows.append({'model': name, **scores})
        logger.info(
            f"{name}: accuracy={scores['accuracy']:.4f}, f1={scores['f1']:.4f}, "
            f"roc_auc={scores['roc_auc']:.4f}"
        )

    board = pd.DataFrame(rows, columns=['model', *METRICS]).set_index('model')
    board = board.sort_values(sort_metric, ascending=False, na_position='last')

    if len(board):
        logger.info(f"Leaderboard leader by {sort_metric}: {board.index[0]}")
    return board
