"""
Unit Tests for Preprocessing Module

Imputation, returns, chronological splitting, seasonal period inference,
forecast index construction and lagged feature matrices.
"""

import numpy as np
import pandas as pd
import pytest

from forecastlab.preprocessing import (
    calculate_returns,
    create_lagged_features,
    future_index,
    impute_missing,
    infer_seasonal_period,
    train_test_split,
)


class TestImputeMissing:

    def test_forward_fill(self):
        prices = pd.Series([100.0, np.nan, np.nan, 102.0, 103.0])
        assert impute_missing(prices).tolist() == [100.0, 100.0, 100.0, 102.0, 103.0]

    def test_leading_nan_backward_filled(self):
        prices = pd.Series([np.nan, 5.0, 6.0])
        assert impute_missing(prices).tolist() == [5.0, 5.0, 6.0]

    def test_all_nan_stays_nan(self):
        assert impute_missing(pd.Series([np.nan, np.nan])).isna().all()


class TestCalculateReturns:

    def test_simple_returns(self):
        returns = calculate_returns(pd.Series([100.0, 102.0, 101.0]))

        assert np.isnan(returns.iloc[0])
        assert returns.iloc[1] == pytest.approx(0.02)
        assert returns.iloc[2] == pytest.approx(-1 / 102)

    def test_log_returns(self):
        returns = calculate_returns(pd.Series([100.0, 110.0]), method='log')
        assert returns.iloc[1] == pytest.approx(np.log(1.1))

    def test_non_positive_prices(self):
        with pytest.raises(ValueError, match="zero or negative"):
            calculate_returns(pd.Series([100.0, 0.0, 101.0]))

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            calculate_returns(pd.Series([1.0, 2.0]), method='pct')


class TestTrainTestSplit:

    def test_fraction_split_is_chronological(self):
        series = pd.Series(np.arange(10.0))
        train, test = train_test_split(series, test_size=0.2)

        assert train.tolist() == list(np.arange(8.0))
        assert test.tolist() == [8.0, 9.0]
        assert train.index.max() < test.index.min()

    def test_integer_split(self):
        train, test = train_test_split(pd.Series(np.arange(10.0)), test_size=3)
        assert len(train) == 7
        assert len(test) == 3

    def test_dataframe_split(self):
        frame = pd.DataFrame({'a': range(10), 'b': range(10)})
        train, test = train_test_split(frame, test_size=0.3)
        assert train.shape == (7, 2)
        assert test.shape == (3, 2)

    @pytest.mark.parametrize("test_size", [0.0, 1.0, 10, -1, True, 'half'])
    def test_invalid_sizes(self, test_size):
        with pytest.raises(ValueError):
            train_test_split(pd.Series(np.arange(10.0)), test_size=test_size)


class TestInferSeasonalPeriod:

    @pytest.mark.parametrize("freq,expected", [
        ('MS', 12),
        ('QS', 4),
        ('D', 7),
        ('B', 5),
        ('W-SUN', 52),
    ])
    def test_known_frequencies(self, freq, expected):
        index = pd.date_range('2020-01-06', periods=30, freq=freq)
        assert infer_seasonal_period(pd.Series(np.ones(30), index=index)) == expected

    def test_integer_index_uses_default(self):
        assert infer_seasonal_period(pd.Series(np.ones(30))) == 1
        assert infer_seasonal_period(pd.Series(np.ones(30)), default=4) == 4

    def test_irregular_dates_use_default(self):
        index = pd.to_datetime(['2024-01-01', '2024-01-02', '2024-01-05', '2024-01-11'])
        assert infer_seasonal_period(pd.Series(np.ones(4), index=index)) == 1


class TestFutureIndex:

    def test_continues_monthly_dates(self):
        index = pd.date_range('2020-01-01', periods=12, freq='MS')
        future = future_index(pd.Series(np.ones(12), index=index), 3)

        assert list(future) == list(pd.date_range('2021-01-01', periods=3, freq='MS'))

    def test_continues_integer_positions(self):
        assert future_index(pd.Series([1.0, 2.0, 3.0]), 2).tolist() == [3, 4]

    def test_invalid_horizon(self):
        with pytest.raises(ValueError):
            future_index(pd.Series([1.0, 2.0]), 0)


class TestCreateLaggedFeatures:

    def test_lag_matrix(self):
        X, y = create_lagged_features(np.arange(6, dtype=float), [1, 2])

        assert X.shape == (4, 2)
        assert X[0].tolist() == [1.0, 0.0]
        assert y.tolist() == [2.0, 3.0, 4.0, 5.0]

    def test_seasonal_lags_sorted(self):
        X, y = create_lagged_features(np.arange(20, dtype=float), [12, 1])

        assert X.shape == (8, 2)
        assert X[0].tolist() == [11.0, 0.0]
        assert y[0] == 12.0

    @pytest.mark.parametrize("lags", [[], [0], [-1], [1.5]])
    def test_invalid_lags(self, lags):
        with pytest.raises(ValueError):
            create_lagged_features(np.arange(10, dtype=float), lags)

    def test_too_short(self):
        with pytest.raises(ValueError):
            create_lagged_features(np.arange(3, dtype=float), [3])

    def test_requires_1d(self):
        with pytest.raises(ValueError):
            create_lagged_features(np.ones((5, 2)), [1])
