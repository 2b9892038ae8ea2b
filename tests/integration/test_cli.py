"""Integration tests for the marketing-report command.

Runs the CLI from a JSON dataset through to the CSV files it writes.
"""

import json
import logging

import pandas as pd
import pytest

from marketing_finance_audit.cli import MAX_INPUT_BYTES, marketing_report_cli


@pytest.fixture
def dataset_json(tmp_path):
    payload = {
        "customers": [
            {
                "customer_id": "C1",
                "acquisition_date": "2024-05-03T00:00:00Z",
                "acquisition_channel": "search",
                "acquisition_campaign": "spring",
                "first_purchase_amount": "80",
                "first_purchase_date": "2024-05-03",
            },
            {
                "customer_id": "C2",
                "acquisition_date": "2024-05-09",
                "acquisition_channel": "search",
                "acquisition_campaign": "spring",
                "first_purchase_amount": 120,
            },
        ],
        "orders": [
            {"order_id": "O1", "customer_id": "C1", "order_total": 80, "order_date": "2024-05-03"},
            {"order_id": "O2", "customer_id": "C2", "order_total": 120, "order_date": "2024-05-09"},
            {"order_id": "O3", "customer_id": "C1", "order_total": 40, "order_date": "2024-06-03"},
        ],
        "spend": [
            {
                "campaign_id": "K1",
                "channel": "search",
                "campaign_name": "spring",
                "campaign_date": "2024-05-01",
                "spend_amount": "100",
            }
        ],
        "touchpoints": [
            {
                "customer_id": "C1",
                "campaign_id": "K1",
                "touchpoint_date": "2024-05-02",
                "channel": "search",
                "campaign_name": "spring",
            }
        ],
        "subscriptions": [
            {
                "subscription_id": "S1",
                "customer_id": "C2",
                "plan_type": "pro",
                "monthly_price": 49,
                "start_date": "2024-05-10",
            }
        ],
        "campaigns": [{"campaign_id": "K1", "cost": 100, "impressions": 500, "clicks": 25}],
    }
    path = tmp_path / "dataset.json"
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


@pytest.fixture
def in_tmp_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestMarketingReportCli:
    """CSV outputs per metric family."""

    def test_writes_all_tables(self, dataset_json, in_tmp_cwd):
        exit_code = marketing_report_cli(
            [str(dataset_json), "--evaluation-instant", "2024-06-30", "--output-dir", "out"]
        )

        assert exit_code == 0
        written = sorted(p.name for p in (in_tmp_cwd / "out").iterdir())
        assert written == [
            "acquisition.csv",
            "acquisition_by_channel.csv",
            "attribution.csv",
            "clv.csv",
            "clv_by_channel.csv",
            "cohort_payback.csv",
            "cohorts.csv",
            "mrr_snapshots.csv",
            "mrr_trend.csv",
        ]

        acquisition = pd.read_csv(in_tmp_cwd / "out" / "acquisition.csv")
        assert acquisition.loc[0, "month"] == "2024-05"
        assert acquisition.loc[0, "cac"] == 50.0
        assert acquisition.loc[0, "roas"] == 2.0

        attribution = pd.read_csv(in_tmp_cwd / "out" / "attribution.csv")
        assert attribution.loc[0, "first_touch_revenue"] == 120.0
        assert attribution.loc[0, "ctr"] == 5.0

    def test_metric_selection(self, dataset_json, in_tmp_cwd):
        exit_code = marketing_report_cli(
            [
                str(dataset_json),
                "--evaluation-instant",
                "2024-06-30",
                "--output-dir",
                "out",
                "--metric",
                "mrr",
                "--metric",
                "cohorts",
            ]
        )
        assert exit_code == 0
        written = sorted(p.name for p in (in_tmp_cwd / "out").iterdir())
        assert written == ["cohort_payback.csv", "cohorts.csv", "mrr_snapshots.csv", "mrr_trend.csv"]

        trend = pd.read_csv(in_tmp_cwd / "out" / "mrr_trend.csv")
        assert list(trend["month"]) == ["2024-06", "2024-05"]
        assert pd.isna(trend.loc[1, "mrr_growth_rate"])
        assert trend.loc[1, "net_new_mrr"] == 49.0

    def test_config_flags_applied(self, dataset_json, in_tmp_cwd):
        exit_code = marketing_report_cli(
            [
                str(dataset_json),
                "--evaluation-instant",
                "2024-06-30",
                "--output-dir",
                "out",
                "--metric",
                "cohorts",
                "--assumed-cac",
                "500",
            ]
        )
        assert exit_code == 0
        payback = pd.read_csv(in_tmp_cwd / "out" / "cohort_payback.csv")
        assert pd.isna(payback.loc[0, "payback_month"])

    def test_invalid_configuration_returns_error(self, dataset_json, in_tmp_cwd, caplog):
        with caplog.at_level(logging.ERROR):
            exit_code = marketing_report_cli(
                [
                    str(dataset_json),
                    "--evaluation-instant",
                    "2024-06-30",
                    "--output-dir",
                    "out",
                    "--assumed-cac",
                    "0",
                ]
            )
        assert exit_code == 1
        assert "assumed_cac must be positive" in caplog.text
        assert not (in_tmp_cwd / "out").exists()

    def test_invalid_record_returns_error(self, tmp_path, in_tmp_cwd, caplog):
        path = tmp_path / "bad.json"
        path.write_text(
            json.dumps(
                {
                    "customers": [],
                    "orders": [
                        {
                            "order_id": "O1",
                            "customer_id": "ghost",
                            "order_total": 1,
                            "order_date": "2024-01-01",
                        }
                    ],
                }
            ),
            encoding="utf-8",
        )
        with caplog.at_level(logging.ERROR):
            exit_code = marketing_report_cli(
                [str(path), "--evaluation-instant", "2024-06-30", "--output-dir", "out"]
            )
        assert exit_code == 1
        assert "unknown customer 'ghost'" in caplog.text

    def test_non_finite_amount_returns_error(self, dataset_json, in_tmp_cwd, caplog):
        payload = json.loads(dataset_json.read_text(encoding="utf-8"))
        payload["orders"][2]["order_total"] = "Infinity"
        dataset_json.write_text(json.dumps(payload), encoding="utf-8")

        with caplog.at_level(logging.ERROR):
            exit_code = marketing_report_cli(
                [
                    str(dataset_json),
                    "--evaluation-instant",
                    "2024-06-30",
                    "--output-dir",
                    "out",
                    "--metric",
                    "clv",
                ]
            )
        assert exit_code == 1
        assert "order_total must be a finite number" in caplog.text
        assert not (in_tmp_cwd / "out").exists()

    def test_output_outside_cwd_rejected(self, dataset_json, in_tmp_cwd):
        exit_code = marketing_report_cli(
            [
                str(dataset_json),
                "--evaluation-instant",
                "2024-06-30",
                "--output-dir",
                str(in_tmp_cwd.parent / "elsewhere"),
            ]
        )
        assert exit_code == 1

    def test_non_object_payload_rejected(self, tmp_path, in_tmp_cwd):
        path = tmp_path / "list.json"
        path.write_text("[]", encoding="utf-8")
        exit_code = marketing_report_cli(
            [str(path), "--evaluation-instant", "2024-06-30", "--output-dir", "out"]
        )
        assert exit_code == 1

    def test_oversized_input_rejected(self, tmp_path, in_tmp_cwd, monkeypatch):
        monkeypatch.setattr("marketing_finance_audit.cli.MAX_INPUT_BYTES", 10)
        path = tmp_path / "big.json"
        path.write_text(json.dumps({"customers": []}), encoding="utf-8")
        exit_code = marketing_report_cli(
            [str(path), "--evaluation-instant", "2024-06-30", "--output-dir", "out"]
        )
        assert exit_code == 1
        assert MAX_INPUT_BYTES == 25 * 1024 * 1024

    def test_evaluation_instant_required(self, dataset_json):
        with pytest.raises(SystemExit):
            marketing_report_cli([str(dataset_json), "--output-dir", "out"])
