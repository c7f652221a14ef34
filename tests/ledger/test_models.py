"""Tests for ledger models and entity ids."""

from datetime import datetime, timedelta, timezone

from ledger import CostBucket, bonus_entity_id, match_entity_id
from ledger.models import to_utc


def test_match_entity_id_is_deterministic():
    kickoff = datetime(2025, 8, 22, 18, 30, tzinfo=timezone.utc)
    mid = match_entity_id("FC Bayern München", "RB Leipzig", kickoff)
    assert mid == f"FC_Bayern_München_RB_Leipzig_{int(kickoff.timestamp())}"
    assert mid == match_entity_id("FC Bayern München", "RB Leipzig", kickoff)


def test_match_entity_id_drops_dots_and_normalizes_zone():
    utc = datetime(2025, 8, 22, 18, 30, tzinfo=timezone.utc)
    cest = utc.astimezone(timezone(timedelta(hours=2)))
    assert match_entity_id("1. FC Köln", "1. FSV Mainz 05", cest) == match_entity_id(
        "1. FC Köln", "1. FSV Mainz 05", utc
    )
    assert "." not in match_entity_id("1. FC Köln", "St. Pauli", utc)


def test_bonus_entity_id_ignores_whitespace_and_case():
    assert bonus_entity_id("Who wins  the league?") == bonus_entity_id(" who wins the LEAGUE? ")


def test_to_utc_naive_is_utc():
    naive = datetime(2025, 1, 1, 12, 0)
    assert to_utc(naive) == datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


def test_cost_bucket_add():
    total = CostBucket(0.5, 2) + CostBucket(0.25, 1)
    assert total.count == 3
    assert abs(total.cost - 0.75) < 1e-9
    assert CostBucket().is_empty
