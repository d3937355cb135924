"""History merge: provenance stamping of history CSV documents."""

from __future__ import annotations

import csv
import io
import logging
from datetime import datetime, timedelta, timezone

import pytest

from ingestion.history_merge import (
    add_data_collected_at,
    has_provenance_column,
    merge_rows,
    parse_rows,
)
from ingestion.history_schema import MatchResultRow

MONDAY = datetime(2025, 8, 25, 9, 0, tzinfo=timezone.utc)
SATURDAY = datetime(2025, 8, 30, 20, 0, tzinfo=timezone.utc)

FRESH_V1 = (
    "Competition,Home_Team,Away_Team,Score,Annotation\n"
    "1.BL,FC Bayern München,RB Leipzig,6:0,\n"
    "DFB,SV Wehen Wiesbaden,FC Bayern München,2:3,\n"
)

FRESH_V2 = (
    "Competition,Home_Team,Away_Team,Score,Annotation\n"
    "1.BL,FC Augsburg,FC Bayern München,2:3,\n"
    "1.BL,FC Bayern München,RB Leipzig,6:0,\n"
    "DFB,SV Wehen Wiesbaden,FC Bayern München,2:3,\n"
)


def _records(content: str):
    return list(csv.DictReader(io.StringIO(content)))


def _row(home: str, away: str, score: str = "1:0", stamp=None) -> MatchResultRow:
    return MatchResultRow(
        competition="1.BL", home_team=home, away_team=away, score=score, data_collected_at=stamp
    )


def test_first_capture_stamps_every_row_with_today():
    out = add_data_collected_at(FRESH_V1, None, MONDAY)
    records = _records(out)
    assert [r["Data_Collected_At"] for r in records] == ["2025-08-25", "2025-08-25"]
    assert list(records[0].keys())[:6] == [
        "Competition",
        "Data_Collected_At",
        "Home_Team",
        "Away_Team",
        "Score",
        "Annotation",
    ]


def test_recapture_keeps_first_observed_date_and_stamps_new_rows():
    v1 = add_data_collected_at(FRESH_V1, None, MONDAY)
    v2 = add_data_collected_at(FRESH_V2, v1, SATURDAY)
    by_home = {r["Home_Team"]: r["Data_Collected_At"] for r in _records(v2)}
    assert by_home == {
        "FC Augsburg": "2025-08-30",
        "FC Bayern München": "2025-08-25",
        "SV Wehen Wiesbaden": "2025-08-25",
    }


def test_row_order_and_count_follow_the_new_document():
    v1 = add_data_collected_at(FRESH_V1, None, MONDAY)
    v2 = add_data_collected_at(FRESH_V2, v1, SATURDAY)
    assert [r["Home_Team"] for r in _records(v2)] == [
        "FC Augsburg",
        "FC Bayern München",
        "SV Wehen Wiesbaden",
    ]


def test_changed_score_is_a_new_row():
    v1 = add_data_collected_at(FRESH_V1, None, MONDAY)
    corrected = FRESH_V1.replace("6:0", "6:1")
    v2 = add_data_collected_at(corrected, v1, SATURDAY)
    stamps = [r["Data_Collected_At"] for r in _records(v2)]
    assert stamps == ["2025-08-30", "2025-08-25"]


def test_already_stamped_input_is_returned_unchanged():
    stamped = add_data_collected_at(FRESH_V1, None, MONDAY)
    assert add_data_collected_at(stamped, None, SATURDAY) == stamped


def test_provenance_header_check_is_case_insensitive():
    content = "competition,data_collected_at,home_team\n"
    assert has_provenance_column(content)
    assert add_data_collected_at(content, None, MONDAY) == content


def test_unstamped_previous_document_contributes_no_stamps():
    out = add_data_collected_at(FRESH_V1, FRESH_V1, SATURDAY)
    assert {r["Data_Collected_At"] for r in _records(out)} == {"2025-08-30"}


def test_malformed_input_is_returned_unchanged_with_warning(caplog):
    broken = "Competition,Home_Team,Away_Team,Score\n1.BL,only two\n"
    with caplog.at_level(logging.WARNING, logger="ingestion.history_merge"):
        assert add_data_collected_at(broken, None, MONDAY) == broken
    assert any("could not be parsed" in r.getMessage() for r in caplog.records)


def test_missing_required_column_is_returned_unchanged():
    content = "Team,Points\nFC Bayern München,9\n"
    assert add_data_collected_at(content, None, MONDAY) == content


def test_empty_input_is_returned_unchanged():
    assert add_data_collected_at("", None, MONDAY) == ""


def test_malformed_previous_document_is_ignored():
    previous = "Competition,Data_Collected_At,Home_Team,Away_Team,Score\n1.BL,2025-08-01\n"
    out = add_data_collected_at(FRESH_V1, previous, SATURDAY)
    assert {r["Data_Collected_At"] for r in _records(out)} == {"2025-08-30"}


def test_missing_annotation_column_reads_as_empty():
    content = "Competition,Home_Team,Away_Team,Score\n1.BL,A,B,1:1\n"
    rows = parse_rows(content)
    assert rows[0].annotation == ""
    out = add_data_collected_at(content, None, MONDAY)
    assert _records(out)[0]["Annotation"] == ""


def test_extra_columns_are_kept_after_the_standard_columns():
    content = "Competition,Home_Team,Away_Team,Score,Annotation,Venue\n1.BL,A,B,1:1,,Allianz Arena\n"
    out = add_data_collected_at(content, None, MONDAY)
    record = _records(out)[0]
    assert list(record.keys())[-1] == "Venue"
    assert record["Venue"] == "Allianz Arena"


def test_quoted_fields_keep_their_commas():
    content = 'Competition,Home_Team,Away_Team,Score,Annotation\n1.BL,"Team, The",B,0:0,\n'
    out = add_data_collected_at(content, None, MONDAY)
    assert _records(out)[0]["Home_Team"] == "Team, The"


def test_merge_rows_copies_previous_stamp_and_preserves_cardinality():
    previous = [_row("A", "B", stamp="2025-08-01"), _row("C", "D", stamp="2025-08-02")]
    new = [_row("E", "F"), _row("A", "B"), _row("A", "B")]
    merged = merge_rows(new, previous, SATURDAY)
    assert len(merged) == 3
    assert [m.data_collected_at for m in merged] == ["2025-08-30", "2025-08-01", "2025-08-01"]
    assert [m.home_team for m in merged] == ["E", "A", "A"]


def test_merge_rows_with_empty_previous_stamps_everything_now():
    merged = merge_rows([_row("A", "B"), _row("C", "D")], [], MONDAY)
    assert {m.data_collected_at for m in merged} == {"2025-08-25"}


def test_merge_rows_skips_unstamped_previous_rows():
    merged = merge_rows([_row("A", "B")], [_row("A", "B", stamp=None)], MONDAY)
    assert merged[0].data_collected_at == "2025-08-25"


def test_merge_rows_duplicate_previous_keys_last_one_wins():
    previous = [_row("A", "B", stamp="2025-08-01"), _row("A", "B", stamp="2025-08-09")]
    merged = merge_rows([_row("A", "B")], previous, MONDAY)
    assert merged[0].data_collected_at == "2025-08-09"


def test_merge_rows_does_not_mutate_inputs():
    new = [_row("A", "B")]
    merge_rows(new, [], MONDAY)
    assert new[0].data_collected_at is None


@pytest.mark.parametrize(
    "now,expected",
    [
        (datetime(2025, 8, 30, 23, 30, tzinfo=timezone.utc), "2025-08-30"),
        (datetime(2025, 8, 31, 0, 30, tzinfo=timezone(timedelta(hours=2))), "2025-08-30"),
    ],
)
def test_stamp_uses_the_utc_date(now, expected):
    merged = merge_rows([_row("A", "B")], [], now)
    assert merged[0].data_collected_at == expected


def test_provenance_check_matches_whole_column_names_only():
    content = "Competition,Home_Team,Away_Team,Score,Notes_Data_Collected_At_Src\n1.BL,A,B,1:1,x\n"
    assert not has_provenance_column(content)
    out = add_data_collected_at(content, None, MONDAY)
    assert _records(out)[0]["Data_Collected_At"] == "2025-08-25"
    assert _records(out)[0]["Notes_Data_Collected_At_Src"] == "x"
