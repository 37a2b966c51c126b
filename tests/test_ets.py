"""
Unit Tests for ETS Engine Module

Covers specification labels, single-model fitting with its input checks,
automatic selection over the ETS family and forecast dicts with prediction
intervals.
"""

import numpy as np
import pandas as pd
import pytest

from forecastlab.ets_engine import ets_spec_label, fit_ets, forecast_ets, select_ets
from forecastlab.exceptions import ModelConvergenceError


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def trending_series() -> pd.Series:
    """Positive series with a steady upward trend and small noise."""
    np.random.seed(42)
    n = 60
    return pd.Series(50 + 0.8 * np.arange(n) + np.random.normal(0, 1, n), name='trend')


@pytest.fixture
def seasonal_series() -> pd.Series:
    """Six years of monthly observations with a pronounced yearly cycle."""
    np.random.seed(42)
    n = 72
    t = np.arange(n)
    values = 200 + 0.3 * t + 25 * np.sin(2 * np.pi * t / 12) + np.random.normal(0, 1, n)
    index = pd.date_range('2018-01-01', periods=n, freq='MS')
    return pd.Series(values, index=index, name='visitors')


# ============================================================================
# LABELS
# ============================================================================

class TestEtsSpecLabel:

    @pytest.mark.parametrize("spec,expected", [
        ({'error': 'add', 'trend': None, 'damped': False, 'seasonal': None}, 'ETS(A,N,N)'),
        ({'error': 'mul', 'trend': 'add', 'damped': True, 'seasonal': None}, 'ETS(M,Ad,N)'),
        ({'error': 'add', 'trend': 'add', 'damped': False, 'seasonal': 'mul'}, 'ETS(A,A,M)'),
    ])
    def test_labels(self, spec, expected):
        assert ets_spec_label(spec) == expected


# ============================================================================
# fit_ets
# ============================================================================

class TestFitEts:
    """Fitting one specification and rejecting invalid ones before fitting."""

    def test_fit_simple_exponential_smoothing(self, trending_series):
        results = fit_ets(trending_series)

        assert len(results.fittedvalues) == len(trending_series)
        assert np.isfinite(results.aicc)

    def test_trend_improves_fit_on_trending_data(self, trending_series):
        level_only = fit_ets(trending_series)
        with_trend = fit_ets(trending_series, trend='add')

        assert with_trend.aicc < level_only.aicc

    def test_damped_without_trend(self, trending_series):
        with pytest.raises(ValueError, match="damped"):
            fit_ets(trending_series, damped=True)

    def test_multiplicative_needs_positive_data(self):
        series = pd.Series(np.linspace(-5, 5, 30))
        with pytest.raises(ValueError, match="strictly positive"):
            fit_ets(series, error='mul')

    def test_seasonal_needs_period(self, trending_series):
        with pytest.raises(ValueError, match="seasonal period"):
            fit_ets(trending_series, seasonal='add')

    def test_seasonal_needs_two_cycles(self, seasonal_series):
        with pytest.raises(ValueError, match="two full cycles"):
            fit_ets(seasonal_series.iloc[:20], seasonal='add', period=12)

    def test_empty_and_nan(self):
        with pytest.raises(ValueError, match="empty"):
            fit_ets(pd.Series([], dtype=float))
        with pytest.raises(ValueError, match="NaN"):
            fit_ets(pd.Series([1.0, np.nan, 3.0, 4.0]))


# ============================================================================
# select_ets
# ============================================================================

class TestSelectEts:

    def test_selects_trend_for_trending_data(self, trending_series):
        results, spec = select_ets(trending_series)

        assert spec['trend'] == 'add'
        assert spec['seasonal'] is None
        assert np.isfinite(results.aicc)

    def test_selects_seasonal_component(self, seasonal_series):
        _, spec = select_ets(seasonal_series, period=12)
        assert spec['seasonal'] in ('add', 'mul')

    def test_negative_data_uses_additive_components(self):
        np.random.seed(3)
        series = pd.Series(np.random.normal(0, 1, 50))

        _, spec = select_ets(series)

        assert spec['error'] == 'add'
        assert spec['seasonal'] is None

    def test_unknown_criterion(self, trending_series):
        with pytest.raises(ValueError, match="information_criterion"):
            select_ets(trending_series, information_criterion='hqic')

    def test_nothing_fits(self):
        with pytest.raises(ModelConvergenceError) as exc_info:
            select_ets(pd.Series([1.0, np.nan, 2.0, 3.0]))
        assert exc_info.value.model_type == 'ETS'


# ============================================================================
# forecast_ets
# ============================================================================

class TestForecastEts:

    def test_forecast_dict(self, seasonal_series):
        results, spec = select_ets(seasonal_series, period=12)

        forecast = forecast_ets(results, seasonal_series, horizon=12, level=80, spec=spec)

        assert forecast['model'] == 'ets'
        assert forecast['level'] == 80
        assert len(forecast['mean']) == 12
        assert forecast['mean'].index[0] == pd.Timestamp('2024-01-01')
        assert (forecast['lower'] <= forecast['mean']).all()
        assert (forecast['mean'] <= forecast['upper']).all()
        assert forecast['params']['label'] == ets_spec_label(spec)
        assert forecast['fitted'].index.equals(seasonal_series.index)

    def test_residuals_are_actual_minus_fitted(self, trending_series):
        results = fit_ets(trending_series, trend='add')

        forecast = forecast_ets(results, trending_series, horizon=3)

        np.testing.assert_allclose(
            forecast['residuals'].to_numpy(),
            trending_series.to_numpy() - forecast['fitted'].to_numpy(),
        )
        assert forecast['mean'].index.tolist() == [60, 61, 62]
        assert forecast['params']['label'] == 'ETS'

    def test_wider_interval_for_higher_level(self, trending_series):
        results = fit_ets(trending_series, trend='add')

        narrow = forecast_ets(results, trending_series, horizon=5, level=80)
        wide = forecast_ets(results, trending_series, horizon=5, level=95)

        assert ((wide['upper'] - wide['lower']) > (narrow['upper'] - narrow['lower'])).all()

    def test_invalid_horizon(self, trending_series):
        results = fit_ets(trending_series)
        with pytest.raises(ValueError, match="horizon"):
            forecast_ets(results, trending_series, horizon=0)
