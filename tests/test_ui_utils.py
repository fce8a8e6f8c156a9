from __future__ import annotations

import pytest

from notionchat.actions import register_builtin_commands
from notionchat.commands import Dispatcher
from notionchat.conversation import EditorForm, FormField
from notionchat.messages import MessageLog
from notionchat.properties import Record
from notionchat.ui_utils import (
    chat_history,
    event_log_messages,
    form_rows,
    palette_choices,
    record_choices,
    rows_to_values,
    safe_component,
)


def _page(title: str, **extra):
    return Record.from_page({"id": "p1", "properties": {"Name": {"type": "title", "title": [{"plain_text": title}]}}, **extra})


def test_safe_component_drops_unsupported_keyword() -> None:
    def factory(label, value=None):
        return {"label": label, "value": value}

    component = safe_component(factory, label="Chat", value=1, live=True)

    assert component == {"label": "Chat", "value": 1}


def test_safe_component_reraises_other_type_errors() -> None:
    def factory(label):
        return label

    with pytest.raises(TypeError):
        safe_component(factory, label="Chat", colour="red")


def test_chat_history_roles_and_record_bubbles() -> None:
    log = MessageLog()
    log.append_sent("/view")
    log.append_record(_page("Laundry", url="https://notion.so/p1"))
    draft = log.append_record(Record.draft(), text="New Entry", is_editing=True)

    history = chat_history(log)

    assert history[0] == {"role": "user", "content": "/view"}
    assert history[1]["role"] == "assistant"
    assert history[1]["content"].startswith("📄 **Laundry**")
    assert "https://notion.so/p1" in history[1]["content"]
    assert history[2]["content"] == "✏️ **New Entry**"
    assert record_choices(log) == [("Laundry", log.records()[0].id), ("New Entry (draft)", draft.id)]


def test_palette_choices_follow_dispatch_state() -> None:
    dispatcher = Dispatcher(register_builtin_commands())

    assert palette_choices(dispatcher.state) == ([], None)

    dispatcher.on_input("/t")
    dispatcher.navigate("down")
    choices, selected = palette_choices(dispatcher.state)

    assert [value for _, value in choices] == ["/tasks", "/test-notion"]
    assert selected == "/test-notion"


def test_form_rows_and_values() -> None:
    form = EditorForm(
        message_id="m1",
        is_new=True,
        fields=[
            FormField("Name", "title", ""),
            FormField("Tags", "multi_select", ["home", "errand"]),
            FormField("Done", "checkbox", False),
            FormField("Status", "status", "Inbox", ("Inbox", "Done")),
            FormField("Due", "date", None),
        ],
    )

    rows = form_rows(form)

    assert rows == [
        ["Name", "title", ""],
        ["Tags", "multi_select", "home, errand"],
        ["Done", "checkbox", "false"],
        ["Status", "status", "Inbox"],
        ["Due", "date", ""],
    ]

    rows[2][2] = "Yes"
    rows[4][2] = "2024-05-14"
    assert rows_to_values(rows + [["", "", "ignored"]]) == {
        "Name": "",
        "Tags": ["home", "errand"],
        "Done": True,
        "Status": "Inbox",
        "Due": "2024-05-14",
    }


def test_rows_to_values_empty_choice_is_none() -> None:
    assert rows_to_values([["Status", "status", " "], ["Estimate", "number", ""]]) == {
        "Status": None,
        "Estimate": None,
    }
    assert rows_to_values(None) == {}


def test_event_log_groups_by_action() -> None:
    entries = [
        "[10:00:00] Session initialized.",
        "[10:00:01] Executing '/view'.",
        "[10:00:02] '/view' completed.",
        "[10:00:03] Executing '/list'.",
    ]

    bubbles = event_log_messages(entries)

    assert [bubble["content"].count("\n") + 1 for bubble in bubbles] == [1, 2, 1]
    assert all(bubble["role"] == "assistant" for bubble in bubbles)
