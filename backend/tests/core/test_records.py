from datetime import date, datetime, timezone

import pytest

from minimusiker.core.errors import RecordDecodeError
from minimusiker.core.models import AudioFile, Event, GuesstimateOrder, ShopOrder
from minimusiker.core.pipeline import PipelineStage
from minimusiker.core.records import decode_record, encode_fields


def _record(model, record_id="rec1", **values):
    return {"id": record_id, "createdTime": "2026-01-01T00:00:00.000Z", "fields": encode_fields(model, values)}


def test_decode_event_with_defaults():
    event = decode_record(Event, _record(Event, event_id="evt_x", event_date="2026-05-04"))
    assert event.record_id == "rec1"
    assert event.event_date == date(2026, 5, 4)
    assert event.audio_pipeline_stage == PipelineStage.PENDING
    assert event.assigned_engineer == []
    assert event.engineer_id is None


def test_decode_unwraps_lookups():
    record = _record(Event, event_id="evt_x")
    record["fields"][Event.field("school_name")] = ["Grundschule Nord"]
    record["fields"][Event.field("event_date")] = ["2026-05-04"]
    event = decode_record(Event, record)
    assert event.school_name == "Grundschule Nord"
    assert event.event_date == date(2026, 5, 4)


def test_decode_rejects_bad_field_shape():
    record = _record(Event, event_id="evt_x")
    record["fields"][Event.field("assigned_engineer")] = 42
    with pytest.raises(RecordDecodeError) as exc:
        decode_record(Event, record)
    assert exc.value.record_id == "rec1"
    assert "assigned_engineer" in exc.value.detail


def test_decode_missing_required_field():
    with pytest.raises(RecordDecodeError):
        decode_record(Event, {"id": "rec2", "fields": {}})


def test_decode_rejects_non_record():
    with pytest.raises(RecordDecodeError):
        decode_record(Event, {"fields": {}})


def test_encode_values():
    fields = encode_fields(
        AudioFile,
        {
            "uploaded_at": datetime(2026, 1, 2, 3, 4, tzinfo=timezone.utc),
            "song_id": ["recSong"],
            "type": "final",
        },
    )
    assert fields[AudioFile.field("uploaded_at")] == "2026-01-02T03:04:00+00:00"
    assert fields[AudioFile.field("song_id")] == ["recSong"]


def test_encode_unknown_attribute():
    with pytest.raises(KeyError):
        encode_fields(Event, {"nope": 1})


def test_line_items_from_json_text():
    record = _record(ShopOrder, order_number=1001)
    record["fields"][ShopOrder.field("line_items")] = (
        '[{"variant_id": "53328502194522", "quantity": 2, "total": 39.8}]'
    )
    order = decode_record(ShopOrder, record)
    assert order.order_number == "1001"
    assert order.line_items[0].quantity == 2


def test_go_id_formatting():
    order = decode_record(GuesstimateOrder, _record(GuesstimateOrder, go_id=7))
    assert order.go_id == "GO-0007"
