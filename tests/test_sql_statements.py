from __future__ import annotations

import warnings
from datetime import datetime, timezone

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import SADeprecationWarning

from eigen_indexer.app.domain.metrics import MetricKind
from eigen_indexer.app.domain.models import (
    ClearTable,
    DepositRecord,
    DestinationTable,
    PodDeployedRecord,
)
from eigen_indexer.app.infrastructure.adapters.block_timestamp_index import (
    insert_blocks_statement,
    select_block_range_statement,
)
from eigen_indexer.app.infrastructure.adapters.bulk_writer import (
    RECORD_TABLES,
    binding_for,
    clear_table_statement,
    insert_skip_duplicates_statement,
    upsert_statement,
)
from eigen_indexer.app.infrastructure.adapters.entity_counts import (
    count_statement,
    created_at_statement,
)
from eigen_indexer.app.infrastructure.adapters.metric_snapshot_reader import (
    latest_per_entity_statement,
    latest_statement,
    list_snapshots_statement,
    row_to_snapshot,
)
from eigen_indexer.app.infrastructure.adapters.sync_cursor_store import (
    select_cursor_statement,
    upsert_cursor_statement,
)

T0 = datetime(2024, 5, 1, tzinfo=timezone.utc)

LOG_FIELDS = dict(
    address="0x" + "aa" * 20,
    transaction_hash="0x" + "01" * 32,
    transaction_index=0,
    log_index=3,
    block_number=100,
    block_hash="0x" + "02" * 32,
    block_time=T0,
)


def _sql(stmt) -> str:
    return " ".join(str(stmt.compile(dialect=postgresql.dialect())).split())


def test_every_record_type_has_a_binding():
    assert {b.table for b in RECORD_TABLES.values()} == set(DestinationTable) - {DestinationTable.VALIDATOR_RESTAKES}


def test_log_tables_skip_duplicates_on_tx_hash_and_log_index():
    binding = binding_for(DepositRecord(**LOG_FIELDS, staker="s", token="t", strategy="x", shares="1"))

    sql = _sql(insert_skip_duplicates_statement(binding))

    assert sql.startswith("INSERT INTO event_logs_deposit")
    assert "ON CONFLICT (transaction_hash, log_index) DO NOTHING" in sql


def test_pod_upsert_keeps_creation_columns():
    record = PodDeployedRecord(**LOG_FIELDS, pod_address="0x" + "55" * 20, pod_owner="0x" + "66" * 20)
    binding = binding_for(record)

    sql = _sql(upsert_statement(binding))

    assert "ON CONFLICT (address) DO UPDATE SET" in sql
    assert "owner = excluded.owner" in sql
    assert "created_at_block = excluded" not in sql
    assert binding.to_row(record)["created_at_block"] == 100


def test_deposit_row_keeps_uint256_exact():
    shares = str(2**256 - 1)
    record = DepositRecord(**LOG_FIELDS, staker="s", token="t", strategy="x", shares=shares)

    row = binding_for(record).to_row(record)

    assert str(row["shares"]) == shares


def test_clear_table_is_a_plain_delete():
    assert _sql(clear_table_statement(ClearTable(DestinationTable.PODS).table)) == "DELETE FROM pods"


def test_cursor_statements_target_settings():
    assert "FROM settings" in _sql(select_cursor_statement("lastSyncedBlock_pods"))
    assert "ON CONFLICT (key) DO UPDATE SET value = excluded.value" in _sql(
        upsert_cursor_statement("lastSyncedBlock_pods", 10)
    )


def test_block_index_statements():
    assert "BETWEEN" in _sql(select_block_range_statement(1, 10))
    assert "ON CONFLICT (number) DO NOTHING" in _sql(insert_blocks_statement())


def test_list_snapshots_scopes_and_excludes_entities():
    sql = _sql(
        list_snapshots_statement(
            MetricKind.STRATEGY,
            start_at=T0,
            end_at=T0,
            exclude_entities=["0xBEAC0EEEEEEEEEEEEEEEEEEEEEEEEEEEEEEEBEAC0"],
        )
    )
    assert "FROM metric_strategy_hourly" in sql
    assert "NOT IN" in sql
    assert sql.endswith("ORDER BY metric_strategy_hourly.timestamp ASC")


def test_latest_statement_bounds():
    strict = _sql(latest_statement(MetricKind.EIGEN_PODS, at=T0, inclusive=False))
    inclusive = _sql(latest_statement(MetricKind.EIGEN_PODS, at=T0, inclusive=True))

    assert "metric_eigen_pods_hourly.timestamp <" in strict
    assert "metric_eigen_pods_hourly.timestamp <=" in inclusive
    assert "DESC" in strict and "LIMIT" in strict


def test_latest_per_entity_uses_distinct_on():
    with warnings.catch_warnings():
        warnings.simplefilter("error", SADeprecationWarning)
        sql = _sql(latest_per_entity_statement(MetricKind.OPERATOR, at=T0, inclusive=True))
    assert "DISTINCT ON (metric_operator_hourly.operator_address)" in sql

    with pytest.raises(ValueError):
        latest_per_entity_statement(MetricKind.DEPOSIT, at=T0, inclusive=True)


def test_row_to_snapshot_maps_values_and_changes():
    snap = row_to_snapshot(
        MetricKind.OPERATOR,
        {
            "operator_address": "0xABC",
            "timestamp": T0,
            "tvl_eth": 3,
            "total_stakers": 2,
            "change_tvl_eth": 1,
            "change_stakers": None,
        },
    )
    assert snap.entity_key == "0xabc"
    assert snap.value("tvl_eth") == 3
    assert snap.change("change_stakers") == 0


def test_staker_count_only_counts_delegated_stakers():
    sql = _sql(count_statement("staker", created_since=T0))
    assert "stakers.operator_address IS NOT NULL" in sql
    assert "stakers.created_at >=" in sql


def test_event_counts_use_block_time():
    assert "event_logs_withdrawal_queued.block_time <" in _sql(count_statement("withdrawal_queued", created_before=T0))
    assert "event_logs_deposit.block_time" in _sql(created_at_statement("deposit", start_at=T0, end_at=T0))


def test_unknown_counted_entity():
    with pytest.raises(ValueError):
        count_statement("pods")  # type: ignore[arg-type]
