"""Per-file decision between full content, a truncated preview, or metadata only."""

from __future__ import annotations

import base64
import json
from typing import TYPE_CHECKING, Any

from ai_index.config import ContentEncoding, InlineItem, InlineState
from ai_index.exceptions import BlobReadError
from ai_index.file_manipulation import sha256_bytes
from ai_index.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from ai_index.config import FileRecord, InlinePolicy

JSON_HINT_SAMPLE_SIZE = 3
JSON_HINT_MAX_KEYS = 12
UTF8_MAX_CONTINUATION = 3


def json_shape_hint(data: bytes) -> dict[str, Any] | None:
    """Describe the top-level shape of a JSON document without embedding it.

    Args:
        data (bytes): the complete JSON file content

    Returns:
        dict[str, Any] | None: ``{"type": "array", "length": n, "sample": [...]}`` for arrays,
            ``{"type": "object", "keys": [...]}`` for objects, ``{"type": <scalar type>}``
            otherwise, or None when the content does not parse
    """
    try:
        parsed = json.loads(data.decode("utf-8"), parse_constant=_reject_constant)
    except (ValueError, RecursionError):
        return None
    if isinstance(parsed, list):
        return {"type": "array", "length": len(parsed), "sample": parsed[:JSON_HINT_SAMPLE_SIZE]}
    if isinstance(parsed, dict):
        return {"type": "object", "keys": list(parsed)[:JSON_HINT_MAX_KEYS]}
    return {"type": _scalar_type(parsed)}


def _reject_constant(name: str) -> Any:  # noqa: ANN401
    # NaN, Infinity and -Infinity are not JSON.
    msg = f"non-standard JSON constant {name}"
    raise ValueError(msg)


def _decode_utf8(data: bytes) -> str | None:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return None


def _decode_utf8_prefix(chunk: bytes) -> str | None:
    """Decode a leading slice of a file, dropping only a sequence cut at its end.

    Returns None when the bytes are not UTF-8 anywhere else.
    """
    for cut in range(min(UTF8_MAX_CONTINUATION, len(chunk)) + 1):
        try:
            return chunk[: len(chunk) - cut].decode("utf-8")
        except UnicodeDecodeError:
            continue
    return None


def _scalar_type(value: Any) -> str:  # noqa: ANN401
    if value is None:
        # typeof null
        return "object"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int | float):
        return "number"
    return "string"


def _metadata_only(record: FileRecord, policy: InlinePolicy) -> InlineItem:
    return InlineItem(
        path=record.path,
        size=record.size,
        sha=record.git_blob_sha,
        media_type=record.media_type,
        raw_url=record.raw_url,
        html_url=record.html_url,
        max_inline_text_bytes=policy.max_inline_text_bytes,
        max_inline_bin_bytes=policy.max_inline_binary_bytes,
        preview_text_bytes=policy.preview_bytes,
    )


def _with_content(
    base: InlineItem,
    *,
    state: InlineState,
    encoding: ContentEncoding,
    content: str,
    full_bytes: bytes,
    json_hint: dict[str, Any] | None = None,
) -> InlineItem:
    return base.model_copy(
        update={
            "inline_state": state,
            "encoding": encoding,
            "content": content,
            "inline_bytes": len(content.encode("utf-8")),
            "content_sha256": sha256_bytes(full_bytes),
            "json_hint": json_hint,
        },
    )


def _as_base64(base: InlineItem, data: bytes) -> InlineItem:
    return _with_content(
        base,
        state=InlineState.FULL,
        encoding=ContentEncoding.BASE64,
        content=base64.b64encode(data).decode("ascii"),
        full_bytes=data,
    )


def inline_record(
    record: FileRecord,
    policy: InlinePolicy,
    read: Callable[[str], bytes],
) -> InlineItem:
    """Decide how much of `record` to embed and build its inline item.

    Precedence:
    1) non-text files are embedded as base64 when within the binary cap, else omitted;
    2) text files on the always-full allowlist, or within the text cap, are embedded in full;
    3) larger text files get the first ``preview_bytes`` bytes (plus a JSON shape hint
       for ``.json``) when a preview budget is configured;
    4) anything else is metadata only.

    Text that is not valid UTF-8 is handled like a binary file. A preview only
    drops a multi-byte sequence cut by the budget.

    `read` is only called when content is needed. A read failure degrades the
    item to metadata only. The content hash always covers the whole file.

    Args:
        record (FileRecord): the file to inline
        policy (InlinePolicy): size thresholds and allowlists
        read (Callable[[str], bytes]): returns the complete bytes of a repository path

    Returns:
        InlineItem: the item with its inline state and, when embedded, content and hash
    """
    base = _metadata_only(record, policy)

    if not record.is_text:
        wants = InlineState.FULL if record.size <= policy.max_inline_binary_bytes else InlineState.NONE
    elif policy.is_always_full(record.path) or record.size <= policy.max_inline_text_bytes:
        wants = InlineState.FULL
    elif policy.preview_bytes > 0:
        wants = InlineState.PREVIEW
    else:
        wants = InlineState.NONE

    if wants == InlineState.NONE:
        return base

    try:
        data = read(record.path)
    except (OSError, BlobReadError) as e:
        logger.warning("inline_read_failed", path=record.path, error=str(e))
        return base

    if not record.is_text:
        return _as_base64(base, data)
    if wants == InlineState.FULL:
        text = _decode_utf8(data)
    else:
        text = _decode_utf8_prefix(data[: policy.preview_bytes])
    if text is None:
        # Not UTF-8: handled like any other binary file.
        logger.warning("inline_not_utf8", path=record.path)
        return _as_base64(base, data) if len(data) <= policy.max_inline_binary_bytes else base

    if wants == InlineState.FULL:
        return _with_content(
            base,
            state=InlineState.FULL,
            encoding=ContentEncoding.TEXT,
            content=text,
            full_bytes=data,
        )
    hint = json_shape_hint(data) if record.extension == ".json" else None
    return _with_content(
        base,
        state=InlineState.PREVIEW,
        encoding=ContentEncoding.TEXT,
        content=text,
        full_bytes=data,
        json_hint=hint,
    )


def inline_records(
    records: Iterable[FileRecord],
    policy: InlinePolicy,
    read: Callable[[str], bytes],
) -> Iterator[InlineItem]:
    for record in records:
        yield inline_record(record, policy, read)
