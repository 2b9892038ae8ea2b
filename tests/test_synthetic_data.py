"""Tests for the synthetic marketing dataset generator."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from marketing_finance_audit.config import MetricsConfig
from marketing_finance_audit.foundation.data_access import InMemoryDataAccess
from marketing_finance_audit.foundation.records import index_customers, validate_orders
from marketing_finance_audit.report import build_marketing_report
from marketing_finance_audit.synthetic import (
    MarketingScenario,
    generate_marketing_dataset,
)

START = date(2023, 1, 1)
END = date(2024, 6, 30)


@pytest.fixture(scope="module")
def dataset():
    return generate_marketing_dataset(60, START, END, seed=42)


class TestGenerateMarketingDataset:
    """Generated records are internally consistent and reproducible."""

    def test_same_seed_same_dataset(self, dataset):
        again = generate_marketing_dataset(60, START, END, seed=42)
        assert again.customers == dataset.customers
        assert again.orders == dataset.orders
        assert again.touchpoints == dataset.touchpoints

    def test_orders_reference_known_customers(self, dataset):
        validate_orders(dataset.orders, index_customers(dataset.customers))

    def test_events_within_bounds(self, dataset):
        acquired = {c.customer_id: c.acquisition_date for c in dataset.customers}
        end = datetime(2024, 6, 30)
        for order in dataset.orders:
            assert acquired[order.customer_id] <= order.order_date <= end
        for sub in dataset.subscriptions:
            assert sub.start_date <= end
            assert sub.end_date is None or sub.end_date <= end

    def test_every_customer_has_first_purchase_and_touchpoint(self, dataset):
        touched = {t.customer_id for t in dataset.touchpoints}
        for customer in dataset.customers:
            assert customer.first_purchase_amount is not None
            assert customer.customer_id in touched

    def test_touchpoint_weights_sum_to_one(self, dataset):
        totals: dict[str, Decimal] = {}
        for tp in dataset.touchpoints:
            totals[tp.customer_id] = totals.get(tp.customer_id, Decimal(0)) + tp.attribution_weight
        assert all(total == Decimal(1) for total in totals.values())

    def test_campaign_per_channel_and_month(self, dataset):
        # 18 months x 4 default channels
        assert len(dataset.campaigns) == 72
        assert len(dataset.spend) == 72

    def test_customer_campaign_has_spend(self, dataset):
        spend_keys = {(s.channel, s.campaign_name) for s in dataset.spend}
        for customer in dataset.customers:
            assert (customer.acquisition_channel, customer.acquisition_campaign) in spend_keys

    def test_payload_round_trips_through_adapter(self, dataset):
        adapter = InMemoryDataAccess.from_payload(dataset.to_payload())
        assert adapter.customers == tuple(dataset.customers)
        assert adapter.orders == tuple(dataset.orders)

    def test_feeds_full_report(self, dataset):
        config = MetricsConfig(evaluation_instant=datetime(2024, 6, 30))
        report = build_marketing_report(dataset.to_adapter(), config)
        assert report.acquisition
        assert report.clv
        assert report.cohorts
        assert report.attribution

    def test_custom_scenario(self):
        scenario = MarketingScenario(channels=("email",), subscription_rate=1.0)
        dataset = generate_marketing_dataset(5, START, END, scenario=scenario, seed=1)
        assert {c.acquisition_channel for c in dataset.customers} == {"email"}
        assert len(dataset.subscriptions) == 5

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            generate_marketing_dataset(-1, START, END)
        with pytest.raises(ValueError):
            generate_marketing_dataset(1, END, START)
        with pytest.raises(ValueError):
            generate_marketing_dataset(1, START, END, scenario=MarketingScenario(channels=()))

    def test_zero_customers(self):
        dataset = generate_marketing_dataset(0, START, END, seed=3)
        assert dataset.customers == []
        assert dataset.orders == []
