# cbdata.py
from typing import Optional

from platforms.types import CallbackQuery
from router_types import CallbackEnvelope, DEFAULT_SUB_ACTION

SEPARATOR = ":"
# Telegram rejects callback_data longer than 64 bytes.
MAX_CALLBACK_BYTES = 64


def encode_cb(module_key: str, sub_action: str = DEFAULT_SUB_ACTION, *params) -> str:
    """Encode callback data for use in Telegram inline keyboards."""
    segments = [str(module_key), str(sub_action)] + [str(p) for p in params]
    for segment in segments[:2]:
        if not segment:
            raise ValueError("module key and sub action must be non-empty")
    for segment in segments:
        if SEPARATOR in segment:
            raise ValueError(f"callback segment may not contain '{SEPARATOR}': {segment!r}")
    data = SEPARATOR.join(segments)
    if len(data.encode("utf-8")) > MAX_CALLBACK_BYTES:
        raise ValueError(f"callback data exceeds {MAX_CALLBACK_BYTES} bytes: {data!r}")
    return data


def decode_cb(
    data: Optional[str],
    callback_id: Optional[str] = None,
    user_id: int = 0,
    chat_id: int = 0,
    message_id: Optional[int] = None,
) -> CallbackEnvelope:
    """
    Decode `module:action:param1:param2...` into a CallbackEnvelope.

    Never raises: missing or malformed data yields an envelope with an empty
    module key. An absent or empty second segment becomes "menu".
    """
    raw = data if isinstance(data, str) else ""
    parts = raw.split(SEPARATOR)
    module_key = parts[0]
    sub_action = parts[1] if len(parts) > 1 and parts[1] else DEFAULT_SUB_ACTION
    return CallbackEnvelope(
        module_key=module_key,
        sub_action=sub_action,
        params=parts[2:],
        raw_data=raw,
        callback_id=callback_id,
        user_id=user_id,
        chat_id=chat_id,
        message_id=message_id,
    )


def envelope_from_query(query: CallbackQuery) -> CallbackEnvelope:
    """Decode a platform callback query, copying its identifiers onto the envelope."""
    return decode_cb(
        query.data,
        callback_id=query.query_id,
        user_id=query.user_id,
        chat_id=query.chat_id,
        message_id=query.message_id,
    )
