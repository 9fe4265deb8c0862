"""Pattern matching over realtime data-channel events."""

import json
import re
from typing import Any, Iterable

RealtimeEventDict = dict[str, Any]

COMPLETION_TOOLS = ("session_complete", "end_assessment", "assessment_complete")
ASSIGNMENT_END_TOOL = "end_assessment"
TRANSFER_TOOL = "transferAgents"
TRANSFER_ACKNOWLEDGEMENT = "Acknowledge the transfer concisely and continue the conversation."

# Events that carry a finished assistant utterance
FINAL_TEXT_TYPES = frozenset({
    "response.output_text.done",
    "response.output_audio_transcript.done",
    "response.content_part.done",
})

STUDENT_TRANSCRIPT_TYPE = "conversation.item.input_audio_transcription.completed"

_CODE_BLOCK = re.compile(r"```(?:python)?\n(.*?)```", re.DOTALL)


def _string(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def get_text_delta(event: RealtimeEventDict) -> str | None:
    """
    Assistant text carried by an event.

    Streaming deltas return the fragment; *.done events return the whole
    utterance. Anything else returns None.
    """
    kind = event.get("type")
    if kind in ("response.output_text.delta", "response.output_audio_transcript.delta"):
        return _string(event.get("delta"))
    if kind == "response.output_text.done":
        return _string(event.get("text"))
    if kind == "response.output_audio_transcript.done":
        return _string(event.get("transcript"))
    if kind == "response.content_part.done":
        part = event.get("part") or {}
        if part.get("type") == "audio":
            return _string(part.get("transcript"))
        if part.get("type") == "text":
            return _string(part.get("text"))
    return None


def is_final_text_event(event: RealtimeEventDict) -> bool:
    return event.get("type") in FINAL_TEXT_TYPES


def final_utterance(event: RealtimeEventDict) -> tuple[str, str] | None:
    """(role, text) for an event that completes a transcript line, else None."""
    if event.get("type") == STUDENT_TRANSCRIPT_TYPE:
        text = _string(event.get("transcript"))
        return ("student", text) if text is not None else None
    if is_final_text_event(event):
        text = get_text_delta(event)
        return ("assistant", text) if text is not None else None
    return None


def extract_code_block(text: str) -> str | None:
    """First fenced code block (optionally tagged python), trimmed."""
    match = _CODE_BLOCK.search(text or "")
    return match.group(1).strip() if match else None


def _is_call(item: Any, names: Iterable[str]) -> bool:
    return isinstance(item, dict) and item.get("type") == "function_call" and item.get("name") in names


def find_completion_call(
    event: RealtimeEventDict,
    names: Iterable[str] = COMPLETION_TOOLS,
) -> tuple[str, str] | None:
    """
    Detect a completion tool call.

    Checks response.function_call_arguments.done, response.output_item.done
    and the output list of response.done.

    Returns:
        (tool name, raw JSON arguments) or None
    """
    names = tuple(names)
    kind = event.get("type")

    if kind == "response.function_call_arguments.done" and event.get("name") in names:
        return event["name"], _string(event.get("arguments")) or "{}"

    if kind == "response.output_item.done" and _is_call(event.get("item"), names):
        item = event["item"]
        return item["name"], _string(item.get("arguments")) or "{}"

    if kind == "response.done":
        output = (event.get("response") or {}).get("output") or []
        for item in output:
            if _is_call(item, names):
                return item["name"], _string(item.get("arguments")) or "{}"

    return None


def parse_tool_arguments(raw: str | None) -> dict[str, Any] | None:
    """Decode tool-call arguments. Malformed or non-object JSON gives None."""
    try:
        parsed = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return None
    return parsed if isinstance(parsed, dict) else None


def code_share_events(code: str, language: str = "python") -> list[RealtimeEventDict]:
    """Client events that put the student's code panel in front of the model."""
    text = f"Here is the current code I have written in my editor:\n```{language}\n{code}\n```"
    return [
        {
            "type": "conversation.item.create",
            "item": {
                "type": "message",
                "role": "user",
                "content": [{"type": "input_text", "text": text}],
            },
        },
        {"type": "response.create"},
    ]


def find_transfer_call(event: RealtimeEventDict) -> str | None:
    """Raw JSON arguments of a transferAgents call, read from response.output_item.done only."""
    if event.get("type") == "response.output_item.done" and _is_call(event.get("item"), (TRANSFER_TOOL,)):
        return _string(event["item"].get("arguments")) or "{}"
    return None


def transfer_events(instructions: str) -> list[RealtimeEventDict]:
    """Swap the session instructions, then have the new persona speak."""
    return [
        {"type": "session.update", "session": {"instructions": instructions}},
        {
            "type": "response.create",
            "response": {
                "instructions": TRANSFER_ACKNOWLEDGEMENT,
                "modalities": ["text", "audio"],
            },
        },
    ]
