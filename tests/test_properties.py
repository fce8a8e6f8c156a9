from __future__ import annotations

import pytest

from notionchat.errors import SchemaMismatchError, UnsupportedPropertyTypeError
from notionchat.properties import (
    PropertyDescriptor,
    PropertyKind,
    Record,
    SelectOption,
    date_range_filter,
    decode,
    decode_record,
    editable_properties,
    encode,
    encode_form,
    equality_filter,
    find_date_property,
    find_status_property,
    find_title_property,
    initial_record,
    initial_value,
    plain_title,
    schema_from_api,
    validate_for_submit,
    with_initial_status,
)

DATABASE = {
    "object": "database",
    "properties": {
        "Name": {"id": "title", "type": "title", "title": {}},
        "Status": {
            "id": "st",
            "type": "status",
            "status": {
                "options": [
                    {"id": "s1", "name": "Inbox", "color": "gray"},
                    {"id": "s2", "name": "Done", "color": "green"},
                ]
            },
        },
        "Due": {"id": "du", "type": "date", "date": {}},
        "Tags": {
            "id": "tg",
            "type": "multi_select",
            "multi_select": {"options": [{"id": "t1", "name": "home"}]},
        },
        "Created": {"id": "ct", "type": "created_time", "created_time": {}},
    },
}


@pytest.fixture
def schema():
    return schema_from_api(DATABASE)


def test_schema_from_api_reads_options(schema) -> None:
    status = schema["Status"]

    assert status.kind is PropertyKind.STATUS
    assert status.options == (
        SelectOption(name="Inbox", id="s1", color="gray"),
        SelectOption(name="Done", id="s2", color="green"),
    )
    assert schema["Created"].is_read_only is True


def test_schema_from_api_requires_properties_map() -> None:
    with pytest.raises(SchemaMismatchError):
        schema_from_api({"object": "database"})


def test_initial_status_uses_configured_option(schema) -> None:
    value = initial_value(schema["Status"], "Inbox")

    assert value == {"type": "status", "status": {"id": "s1", "name": "Inbox"}}


def test_initial_status_is_absent_when_label_missing(schema) -> None:
    assert initial_value(schema["Status"], "Backlog") is None


def test_initial_record_skips_read_only_properties(schema) -> None:
    record = initial_record(schema)

    assert record.is_new is True
    assert "Created" not in record.properties
    assert record.properties["Name"] == {"type": "title", "title": [{"type": "text", "text": {"content": ""}}]}
    assert record.properties["Tags"] == {"type": "multi_select", "multi_select": []}
    assert record.properties["Due"] == {"type": "date", "date": None}


@pytest.mark.parametrize(
    "prop_type, value",
    [
        ("title", "Buy milk"),
        ("title", ""),
        ("rich_text", "line one\nline two"),
        ("select", "Urgent"),
        ("select", None),
        ("status", "Done"),
        ("multi_select", ["home", "errand"]),
        ("multi_select", []),
        ("date", "2024-05-13"),
        ("date", "2024-05-13T09:00:00/2024-05-13T10:30:00"),
        ("date", None),
        ("checkbox", True),
        ("checkbox", False),
        ("url", "https://example.com"),
        ("url", ""),
        ("number", 3.5),
        ("number", None),
    ],
)
def test_decode_returns_what_encode_was_given(prop_type, value) -> None:
    descriptor = PropertyDescriptor(name="Field", type=prop_type)

    assert decode(encode(value, descriptor), descriptor) == value


_PAGE_SCHEMA = schema_from_api(DATABASE)
_LINK = PropertyDescriptor(name="Link", type="url")


@pytest.mark.parametrize(
    "descriptor, payload, expected",
    [
        (
            _PAGE_SCHEMA["Name"],
            {
                "id": "title",
                "type": "title",
                "title": [
                    {
                        "type": "text",
                        "text": {"content": "Buy ", "link": None},
                        "annotations": {"bold": True},
                        "plain_text": "Buy ",
                        "href": None,
                    },
                    {
                        "type": "text",
                        "text": {"content": "milk", "link": None},
                        "plain_text": "milk",
                        "href": None,
                    },
                ],
            },
            {"type": "title", "title": [{"type": "text", "text": {"content": "Buy milk"}}]},
        ),
        (
            _PAGE_SCHEMA["Status"],
            {"id": "st", "type": "status", "status": {"id": "s2", "name": "Done", "color": "green"}},
            {"type": "status", "status": {"id": "s2", "name": "Done"}},
        ),
        (
            _PAGE_SCHEMA["Status"],
            {"id": "st", "type": "status", "status": None},
            {"type": "status", "status": None},
        ),
        (
            _PAGE_SCHEMA["Due"],
            {"id": "du", "type": "date", "date": {"start": "2024-05-13", "end": None, "time_zone": None}},
            {"type": "date", "date": {"start": "2024-05-13"}},
        ),
        (
            _PAGE_SCHEMA["Due"],
            {
                "id": "du",
                "type": "date",
                "date": {
                    "start": "2024-05-13T09:00:00.000-07:00",
                    "end": "2024-05-13T10:30:00.000-07:00",
                    "time_zone": None,
                },
            },
            {
                "type": "date",
                "date": {"start": "2024-05-13T09:00:00.000-07:00", "end": "2024-05-13T10:30:00.000-07:00"},
            },
        ),
        (
            _LINK,
            {"id": "ln", "type": "url", "url": None},
            {"type": "url", "url": None},
        ),
        (
            _PAGE_SCHEMA["Tags"],
            {"id": "tg", "type": "multi_select", "multi_select": [{"id": "t1", "name": "home", "color": "red"}]},
            {"type": "multi_select", "multi_select": [{"id": "t1", "name": "home"}]},
        ),
    ],
)
def test_encode_restores_page_payload(descriptor, payload, expected) -> None:
    encoded = encode(decode(payload, descriptor), descriptor)

    assert encoded == expected
    assert decode(encoded, descriptor) == decode(payload, descriptor)


def test_encode_choice_uses_option_id_when_known(schema) -> None:
    assert encode("Done", schema["Status"]) == {"type": "status", "status": {"id": "s2", "name": "Done"}}


def test_encode_number_parses_text() -> None:
    descriptor = PropertyDescriptor(name="Estimate", type="number")

    assert encode("3", descriptor) == {"type": "number", "number": 3}
    assert encode(" 2.5 ", descriptor) == {"type": "number", "number": 2.5}
    with pytest.raises(SchemaMismatchError):
        encode("lots", descriptor)


def test_decode_missing_payload_gives_empty_value(schema) -> None:
    assert decode(None, schema["Name"]) == ""
    assert decode(None, schema["Tags"]) == []
    assert decode(None, schema["Status"]) is None


def test_decode_rejects_mismatched_tag(schema) -> None:
    with pytest.raises(SchemaMismatchError):
        decode({"type": "rich_text", "rich_text": []}, schema["Name"])


def test_unsupported_type_is_reported() -> None:
    descriptor = PropertyDescriptor(name="Owner", type="people")

    with pytest.raises(UnsupportedPropertyTypeError) as excinfo:
        encode(["someone"], descriptor)

    assert "people" in str(excinfo.value)


def test_read_only_types_are_not_editable(schema) -> None:
    assert [d.name for d in editable_properties(schema)] == ["Name", "Status", "Due", "Tags"]
    with pytest.raises(UnsupportedPropertyTypeError):
        decode({"type": "created_time", "created_time": "2024-05-01T00:00:00Z"}, schema["Created"])


def test_decode_record_reads_plain_text_runs(schema) -> None:
    record = Record.from_page(
        {
            "id": "p1",
            "properties": {
                "Name": {"type": "title", "title": [{"plain_text": "Laun"}, {"plain_text": "dry"}]},
                "Status": {"type": "status", "status": {"id": "s2", "name": "Done"}},
                "Due": {"type": "date", "date": {"start": "2024-05-14", "end": None}},
            },
        }
    )

    assert decode_record(record, schema) == {
        "Name": "Laundry",
        "Status": "Done",
        "Due": "2024-05-14",
        "Tags": [],
    }


def test_encode_form_leaves_out_empty_status(schema) -> None:
    properties = encode_form({"Name": "Call mom", "Status": None, "Unknown": "x"}, schema)

    assert set(properties) == {"Name"}


def test_with_initial_status_keeps_existing_value(schema) -> None:
    done = encode("Done", schema["Status"])

    assert with_initial_status({"Status": done}, schema)["Status"] == done
    assert with_initial_status({}, schema)["Status"] == {"type": "status", "status": {"id": "s1", "name": "Inbox"}}


def test_validate_for_submit_fills_empty_title(schema) -> None:
    draft = Record.draft({"Name": encode("   ", schema["Name"])})

    validated = validate_for_submit(draft, schema)

    assert plain_title(validated) == "Untitled"
    assert validated.is_new is True
    assert draft.properties["Name"] == encode("   ", schema["Name"])


def test_validate_for_submit_adds_missing_title(schema) -> None:
    validated = validate_for_submit(Record.draft(), schema, placeholder="No title")

    assert validated.properties["Name"] == {"type": "title", "title": [{"type": "text", "text": {"content": "No title"}}]}


def test_validate_for_submit_keeps_real_title(schema) -> None:
    record = Record(properties={"Name": encode("Pay rent", schema["Name"])}, id="p1")

    assert plain_title(validate_for_submit(record, schema)) == "Pay rent"


def test_property_lookups(schema) -> None:
    assert find_title_property(schema) == "Name"
    assert find_title_property({}, fallback="Task") == "Task"
    assert find_date_property(schema).name == "Due"
    assert find_status_property(schema).name == "Status"


def test_property_lookups_report_missing_columns() -> None:
    with pytest.raises(SchemaMismatchError, match="No date property found in database"):
        find_date_property({})
    with pytest.raises(SchemaMismatchError, match="No status/state property found in database"):
        find_status_property({"Name": PropertyDescriptor(name="Name", type="title")})


def test_equality_filter_matches_option_case_insensitively(schema) -> None:
    assert equality_filter(schema["Status"], "done") == {"property": "Status", "status": {"equals": "Done"}}
    assert equality_filter(schema["Status"], "Waiting") == {"property": "Status", "status": {"equals": "Waiting"}}


def test_equality_filter_supports_select_state_column() -> None:
    state = PropertyDescriptor(name="State", type="select", options=(SelectOption(name="Today"),))

    assert equality_filter(state, "today") == {"property": "State", "select": {"equals": "Today"}}


def test_equality_filter_rejects_other_types() -> None:
    with pytest.raises(UnsupportedPropertyTypeError, match="Unsupported status property type: rich_text"):
        equality_filter(PropertyDescriptor(name="Status", type="rich_text"), "done")


def test_date_range_filter_uses_inclusive_bounds() -> None:
    assert date_range_filter("When", "2024-05-13", "2024-05-17") == {
        "and": [
            {"property": "When", "date": {"on_or_after": "2024-05-13"}},
            {"property": "When", "date": {"on_or_before": "2024-05-17"}},
        ]
    }
