#!/usr/bin/env python3

# Copyright (c) 2025 James Baker VA7ODR
#
# Permission is hereby granted, free of charge, to any person obtaining a copy of this software
# and associated documentation files (the “Software”), to deal in the Software without
# restriction, including without limitation the rights to use, copy, modify, merge, publish,
# distribute, sublicense, and/or sell copies of the Software, and to permit persons to whom the
# Software is furnished to do so, subject to the following conditions:
#
# The above copyright notice and this permission notice shall be included in all copies or
# substantial portions of the Software.
#
# THE SOFTWARE IS PROVIDED “AS IS”, WITHOUT WARRANTY OF ANY KIND, EXPRESS OR
# IMPLIED, INCLUDING BUT NOT LIMITED TO THE WARRANTIES OF MERCHANTABILITY,
# FITNESS FOR A PARTICULAR PURPOSE AND NONINFRINGEMENT. IN NO EVENT SHALL
# THE AUTHORS OR COPYRIGHT HOLDERS BE LIABLE FOR ANY CLAIM, DAMAGES OR
# OTHER LIABILITY, WHETHER IN AN ACTION OF CONTRACT, TORT OR OTHERWISE,
# ARISING FROM, OUT OF OR IN CONNECTION WITH THE SOFTWARE OR THE USE OR
# OTHER DEALINGS IN THE SOFTWARE.

from __future__ import annotations

import logging
import os
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import gradio as gr

import notionchat.config as notionchat_config
from notionchat.actions import register_builtin_commands
from notionchat.commands import CommandRegistry
from notionchat.conversation import ConversationController
from notionchat.errors import NotionChatError
from notionchat.session import NotionSession
from notionchat.ui_utils import (
    FORM_HEADERS,
    chat_history,
    event_log_messages,
    form_rows,
    palette_choices,
    record_choices,
    rows_to_values,
    safe_component,
)


notionchat_config.reload_from_environment()

logging.basicConfig(
    level=os.getenv("NOTIONCHAT_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

_safe_component = safe_component

_THEME_JS = """
(theme) => {
    document.body.classList.toggle("dark", theme === "dark");
    return [];
}
"""


@dataclass
class AppDependencies:
    settings: notionchat_config.Settings
    registry: CommandRegistry
    session_factory: Callable[[notionchat_config.Settings], NotionSession]


_dependencies: AppDependencies | None = None
_controllers: Dict[str, ConversationController] = {}
_controllers_lock = threading.Lock()

# Gradio discards a client's state this long after its last update.
_STATE_TTL_SECONDS = 6 * 60 * 60


def build_dependencies(
    *,
    settings: Optional[notionchat_config.Settings] = None,
    registry: CommandRegistry | None = None,
    session_factory: Optional[Callable[[notionchat_config.Settings], NotionSession]] = None,
) -> AppDependencies:
    return AppDependencies(
        settings=settings or notionchat_config.Settings.from_config(),
        registry=register_builtin_commands(registry or CommandRegistry()),
        session_factory=session_factory or NotionSession,
    )


def get_dependencies() -> AppDependencies:
    if _dependencies is None:
        raise RuntimeError("App dependencies have not been configured")
    return _dependencies


def configure_dependencies(deps: AppDependencies) -> AppDependencies:
    global _dependencies
    with _controllers_lock:
        _dependencies = deps
        stale = list(_controllers.values())
        _controllers.clear()
    for controller in stale:
        controller.close()
    return deps


configure_dependencies(build_dependencies())


def _new_controller() -> ConversationController:
    deps = get_dependencies()
    return ConversationController(
        deps.session_factory(deps.settings),
        registry=deps.registry,
        settings=deps.settings,
    )


def _ensure_state(state: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    if not isinstance(state, dict) or not state.get("client_id"):
        state = {"client_id": uuid.uuid4().hex}
    return state


def _controller_for(state: Dict[str, Any]) -> ConversationController:
    client_id = state["client_id"]
    with _controllers_lock:
        controller = _controllers.get(client_id)
        created = controller is None
        if created:
            controller = _new_controller()
            _controllers[client_id] = controller
    if created:
        controller.log_event("Session initialized.")
    return controller


def _release_state(state: Optional[Dict[str, Any]]) -> None:
    """Close the controller of a client whose state Gradio has discarded."""

    if not isinstance(state, dict):
        return
    with _controllers_lock:
        controller = _controllers.pop(state.get("client_id"), None)
    if controller is not None:
        controller.close()


def _palette_update(controller: ConversationController) -> Any:
    choices, selected = palette_choices(controller.palette)
    return gr.update(choices=choices, value=selected, visible=bool(choices))


def _records_update(controller: ConversationController, selected: Optional[str] = None) -> Any:
    choices = record_choices(controller.messages)
    ids = {value for _, value in choices}
    if selected not in ids:
        selected = None
    if selected is None:
        editing = [message.id for message in controller.messages.records() if message.is_editing]
        selected = editing[-1] if editing else None
    return gr.update(choices=choices, value=selected)


def _log_update(controller: ConversationController) -> List[Dict[str, Any]]:
    return event_log_messages(controller.event_log)


def _rehydrate_state(state: Optional[Dict[str, Any]] = None) -> Tuple[Any, ...]:
    """Bind a freshly connected client to its own controller."""

    state = _ensure_state(state)
    controller = _controller_for(state)
    return (
        state,
        chat_history(controller.messages),
        _log_update(controller),
        _records_update(controller),
        controller.theme,
    )


def on_input_change(text: str, state: Dict[str, Any]):
    state = _ensure_state(state)
    controller = _controller_for(state)
    controller.on_input(text)
    return state, _palette_update(controller)


def _navigate(direction: str) -> Callable[[Dict[str, Any]], Tuple[Any, ...]]:
    def handler(state: Dict[str, Any]):
        state = _ensure_state(state)
        controller = _controller_for(state)
        controller.navigate(direction)
        return state, _palette_update(controller)

    return handler


on_palette_up = _navigate("up")
on_palette_down = _navigate("down")


def on_palette_escape(state: Dict[str, Any]):
    state = _ensure_state(state)
    controller = _controller_for(state)
    controller.escape()
    return state, _palette_update(controller)


def _after_command(controller: ConversationController, state: Dict[str, Any]) -> Tuple[Any, ...]:
    return (
        state,
        chat_history(controller.messages),
        _log_update(controller),
        gr.update(value=""),
        _palette_update(controller),
        _records_update(controller),
        controller.theme,
    )


def on_user(message: str, state: Dict[str, Any]):
    state = _ensure_state(state)
    controller = _controller_for(state)
    controller.submit(message)
    return _after_command(controller, state)


def on_palette_pick(name: Optional[str], state: Dict[str, Any]):
    state = _ensure_state(state)
    controller = _controller_for(state)
    names = [command.name for command in controller.palette.filtered_commands]
    if name in names:
        controller.pick(names.index(name))
    return _after_command(controller, state)


def on_select_record(message_id: Optional[str], state: Dict[str, Any]):
    state = _ensure_state(state)
    controller = _controller_for(state)
    for message in controller.messages.records():
        if message.is_editing and message.id != message_id:
            controller.cancel_edit(message.id)
    if not message_id:
        return state, [], "", chat_history(controller.messages), _log_update(controller)
    try:
        form = controller.editor_form(message_id)
    except KeyError:
        return state, [], "Entry is no longer in the thread.", chat_history(controller.messages), _log_update(controller)
    except NotionChatError as exc:
        controller.log_event(f"Loading editor failed: {exc}", level=logging.WARNING)
        return state, [], f"Error: {exc}", chat_history(controller.messages), _log_update(controller)
    controller.begin_edit(message_id)
    status = "Editing new entry" if form.is_new else "Editing entry"
    return state, form_rows(form), status, chat_history(controller.messages), _log_update(controller)


def _after_edit(controller: ConversationController, state: Dict[str, Any], status: str) -> Tuple[Any, ...]:
    return (
        state,
        chat_history(controller.messages),
        _log_update(controller),
        _records_update(controller, None),
        [],
        status,
    )


def on_save_record(message_id: Optional[str], rows: Any, state: Dict[str, Any]):
    state = _ensure_state(state)
    controller = _controller_for(state)
    if not message_id:
        return _after_edit(controller, state, "Select an entry first.")
    try:
        reply = controller.save_record(message_id, rows_to_values(rows))
    except KeyError:
        return _after_edit(controller, state, "Entry is no longer in the thread.")
    return _after_edit(controller, state, reply.text)


def on_delete_record(message_id: Optional[str], state: Dict[str, Any]):
    state = _ensure_state(state)
    controller = _controller_for(state)
    if not message_id:
        return _after_edit(controller, state, "Select an entry first.")
    try:
        reply = controller.delete_record(message_id)
    except KeyError:
        return _after_edit(controller, state, "Entry is no longer in the thread.")
    return _after_edit(controller, state, reply.text)


def on_cancel_edit(message_id: Optional[str], state: Dict[str, Any]):
    state = _ensure_state(state)
    controller = _controller_for(state)
    if message_id:
        try:
            controller.cancel_edit(message_id)
        except KeyError:
            pass
    return _after_edit(controller, state, "")


with gr.Blocks(title="NotionChat") as demo:
    gr.Markdown("""
    # NotionChat
    """)

    style_component = getattr(gr, "HTML", None) or gr.Markdown
    _safe_component(
        style_component,
        """
        <style>
        #notionchat-palette {
            max-height: 260px;
            overflow-y: auto;
        }

        #notionchat-palette-nav {
            gap: 0.25rem;
        }
        </style>
        """,
    )

    state = gr.State(value=None, time_to_live=_STATE_TTL_SECONDS, delete_callback=_release_state)
    theme_box = gr.Textbox(value="light", visible=False)

    with gr.Row():
        with gr.Column(scale=3):
            chat = _safe_component(
                gr.Chatbot,
                value=[],
                height=420,
                type="messages",
                live=True,
                optional_keys=("live", "type", "bubble_full_width"),
                elem_id="notionchat-chat",
            )
            palette = _safe_component(
                gr.Radio,
                label="Commands",
                choices=[],
                visible=False,
                elem_id="notionchat-palette",
                optional_keys=("elem_id",),
            )
            with gr.Row(elem_id="notionchat-palette-nav"):
                up_btn = gr.Button("▲", scale=0)
                down_btn = gr.Button("▼", scale=0)
                esc_btn = gr.Button("Esc", scale=0)
            user_box = gr.Textbox(label="Message", placeholder="Type / for commands")
            send_btn = gr.Button("Send", variant="primary")
        with gr.Column(scale=2):
            record_selector = gr.Dropdown(
                label="Entry",
                choices=[],
                value=None,
                interactive=True,
            )
            record_table = _safe_component(
                gr.Dataframe,
                headers=FORM_HEADERS,
                datatype=["str", "str", "str"],
                col_count=(3, "fixed"),
                type="array",
                interactive=True,
                optional_keys=("datatype", "col_count"),
            )
            editor_status = gr.Markdown("")
            with gr.Row():
                save_btn = gr.Button("Save", variant="primary")
                cancel_btn = gr.Button("Cancel", variant="secondary")
                delete_btn = gr.Button("Delete", variant="stop")

    log_box = _safe_component(
        gr.Chatbot,
        label="Event Log",
        value=[],
        height=260,
        type="messages",
        live=True,
        optional_keys=("live", "type", "bubble_full_width"),
    )

    demo.load(
        _rehydrate_state,
        inputs=state,
        outputs=[state, chat, log_box, record_selector, theme_box],
    )

    command_outputs = [state, chat, log_box, user_box, palette, record_selector, theme_box]
    send_btn.click(on_user, inputs=[user_box, state], outputs=command_outputs)
    user_box.submit(on_user, inputs=[user_box, state], outputs=command_outputs)
    user_box.change(on_input_change, inputs=[user_box, state], outputs=[state, palette])
    palette.input(on_palette_pick, inputs=[palette, state], outputs=command_outputs)

    up_btn.click(on_palette_up, inputs=state, outputs=[state, palette])
    down_btn.click(on_palette_down, inputs=state, outputs=[state, palette])
    esc_btn.click(on_palette_escape, inputs=state, outputs=[state, palette])

    theme_box.change(None, inputs=theme_box, outputs=None, js=_THEME_JS)

    record_selector.change(
        on_select_record,
        inputs=[record_selector, state],
        outputs=[state, record_table, editor_status, chat, log_box],
    )
    edit_outputs = [state, chat, log_box, record_selector, record_table, editor_status]
    save_btn.click(on_save_record, inputs=[record_selector, record_table, state], outputs=edit_outputs)
    delete_btn.click(on_delete_record, inputs=[record_selector, state], outputs=edit_outputs)
    cancel_btn.click(on_cancel_edit, inputs=[record_selector, state], outputs=edit_outputs)


if __name__ == "__main__":
    configure_dependencies(build_dependencies())
    demo.launch(server_name="0.0.0.0", server_port=7860, show_error=True)
