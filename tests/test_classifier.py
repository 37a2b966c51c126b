"""
Unit Tests for Direction Classifier Module

Feature construction without look-ahead, the estimator factory, training,
evaluation and the leaderboard. A price path whose returns alternate in
sign gives the classifiers a pattern they can learn.
"""

import numpy as np
import pandas as pd
import pytest
from sklearn.dummy import DummyClassifier
from sklearn.pipeline import Pipeline

from forecastlab.classifier import (
    build_direction_features,
    evaluate_classifier,
    leaderboard,
    make_classifier,
    train_classifiers,
)
from forecastlab.exceptions import ConfigurationError, DataValidationError
from forecastlab.preprocessing import train_test_split


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def random_walk_prices() -> pd.Series:
    np.random.seed(42)
    returns = np.random.normal(0.0005, 0.01, 300)
    index = pd.bdate_range('2022-01-03', periods=300)
    return pd.Series(100 * np.cumprod(1 + returns), index=index, name='close')


@pytest.fixture
def alternating_prices() -> pd.Series:
    """Returns flip sign every period, so lag_1 < 0 means the next return is up."""
    np.random.seed(42)
    signs = np.where(np.arange(300) % 2 == 0, 1.0, -1.0)
    returns = signs * np.random.uniform(0.005, 0.02, 300)
    return pd.Series(100 * np.cumprod(1 + returns), name='close')


@pytest.fixture
def split_features(alternating_prices):
    features = build_direction_features(alternating_prices, lags=3)
    train, test = train_test_split(features, test_size=0.25)
    X_train, y_train = train.drop(columns='direction'), train['direction']
    X_test, y_test = test.drop(columns='direction'), test['direction']
    return X_train, y_train, X_test, y_test


# ============================================================================
# FEATURES
# ============================================================================

class TestBuildDirectionFeatures:

    def test_columns_and_rows(self, random_walk_prices):
        features = build_direction_features(random_walk_prices, lags=5)

        assert list(features.columns) == [
            'lag_1', 'lag_2', 'lag_3', 'lag_4', 'lag_5', 'volatility_5', 'direction',
        ]
        # first return is NaN, four more rows fill the lags, last row has no next return
        assert len(features) == 300 - 5 - 1
        assert features.notna().all().all()
        assert set(features['direction'].unique()) <= {0, 1}

    def test_target_is_next_return_and_lags_are_past(self, random_walk_prices):
        features = build_direction_features(random_walk_prices, lags=2)
        returns = random_walk_prices.pct_change()

        date = features.index[10]
        position = random_walk_prices.index.get_loc(date)
        assert features.loc[date, 'lag_1'] == pytest.approx(returns.iloc[position])
        assert features.loc[date, 'lag_2'] == pytest.approx(returns.iloc[position - 1])
        assert features.loc[date, 'direction'] == int(returns.iloc[position + 1] > 0)

    def test_last_price_has_no_row(self, random_walk_prices):
        features = build_direction_features(random_walk_prices)
        assert features.index[-1] == random_walk_prices.index[-2]

    @pytest.mark.parametrize("lags", [0, -2, 1.5, True])
    def test_invalid_lags(self, random_walk_prices, lags):
        with pytest.raises(ValueError):
            build_direction_features(random_walk_prices, lags=lags)

    def test_too_few_rows(self):
        with pytest.raises(DataValidationError):
            build_direction_features(pd.Series(np.linspace(100, 110, 12)), lags=5)


# ============================================================================
# FACTORY AND TRAINING
# ============================================================================

class TestMakeClassifier:

    def test_baseline_is_majority_class(self):
        model = make_classifier('baseline')
        assert isinstance(model, DummyClassifier)
        assert model.strategy == 'most_frequent'

    def test_scaled_pipelines(self):
        assert isinstance(make_classifier('logistic_regression'), Pipeline)
        assert isinstance(make_classifier('knn'), Pipeline)

    def test_random_forest_uses_config(self):
        model = make_classifier('random_forest', {'n_estimators': 25, 'random_state': 1})
        assert model.n_estimators == 25
        assert model.random_state == 1

    def test_unknown_name(self):
        with pytest.raises(ConfigurationError) as exc_info:
            make_classifier('svm')
        assert exc_info.value.invalid_value == 'svm'


class TestTrainClassifiers:

    def test_trains_every_model(self, split_features):
        X_train, y_train, _, _ = split_features

        models = train_classifiers(
            X_train, y_train,
            ['baseline', 'logistic_regression', 'random_forest', 'gradient_boosting', 'knn'],
            {'n_estimators': 20},
        )

        assert set(models) == {
            'baseline', 'logistic_regression', 'random_forest', 'gradient_boosting', 'knn',
        }
        for model in models.values():
            assert len(model.predict(X_train)) == len(X_train)

    def test_knn_neighbours_reduced_for_small_training_set(self, split_features):
        X_train, y_train, _, _ = split_features

        models = train_classifiers(X_train.iloc[:8], y_train.iloc[:8], ['knn'])

        assert models['knn'].named_steps['kneighborsclassifier'].n_neighbors == 8

    def test_single_class_target(self, split_features):
        X_train, _, _, _ = split_features
        with pytest.raises(DataValidationError, match="single class"):
            train_classifiers(X_train, pd.Series(1, index=X_train.index), ['baseline'])


# ============================================================================
# EVALUATION AND LEADERBOARD
# ============================================================================

class TestEvaluation:

    def test_learnable_pattern_beats_baseline(self, split_features):
        X_train, y_train, X_test, y_test = split_features
        models = train_classifiers(X_train, y_train, ['baseline', 'logistic_regression'])

        baseline = evaluate_classifier(models['baseline'], X_test, y_test)
        logistic = evaluate_classifier(models['logistic_regression'], X_test, y_test)

        assert logistic['accuracy'] > 0.9
        assert logistic['accuracy'] > baseline['accuracy']
        assert logistic['roc_auc'] > 0.9

    def test_single_class_test_set_has_nan_auc(self, split_features):
        X_train, y_train, X_test, y_test = split_features
        models = train_classifiers(X_train, y_train, ['logistic_regression'])
        ups = y_test == 1

        scores = evaluate_classifier(models['logistic_regression'], X_test[ups], y_test[ups])

        assert np.isnan(scores['roc_auc'])
        assert 0.0 <= scores['accuracy'] <= 1.0

    def test_leaderboard_ranking(self, split_features):
        X_train, y_train, X_test, y_test = split_features
        models = train_classifiers(X_train, y_train, ['baseline', 'logistic_regression', 'knn'])

        board = leaderboard(models, X_test, y_test, sort_metric='accuracy')

        assert board.index.name == 'model'
        assert list(board.columns) == ['accuracy', 'precision', 'recall', 'f1', 'roc_auc']
        assert board['accuracy'].is_monotonic_decreasing
        assert board.index[-1] == 'baseline'

    def test_leaderboard_unknown_metric(self, split_features):
        X_train, y_train, X_test, y_test = split_features
        models = train_classifiers(X_train, y_train, ['baseline'])
        with pytest.raises(ValueError, match="sort_metric"):
            leaderboard(models, X_test, y_test, sort_metric='logloss')
