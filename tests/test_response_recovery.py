from __future__ import annotations

import pytest

from rfq_sheet.modules.extraction.recovery import (
    locate_json_block,
    recover_items,
    strip_control_chars,
)


def test_recover_items_ignores_prose_and_markdown_fences():
    reply = (
        "Sure! Here are the items I found:\n"
        "```json\n"
        '{"items": [{"description_raw": "GI Pipe", "quantity_raw": "10", "uom_raw": "nos"}]}\n'
        "```\n"
        "Let me know if you need anything else."
    )
    assert recover_items(reply) == [
        {"description_raw": "GI Pipe", "quantity_raw": "10", "uom_raw": "nos"}
    ]


def test_recover_items_keeps_item_order():
    reply = '{"items": [{"description_raw": "b"}, {"description_raw": "a"}, {"description_raw": "c"}]}'
    assert [r["description_raw"] for r in recover_items(reply)] == ["b", "a", "c"]


@pytest.mark.parametrize(
    "reply",
    [
        "",
        "I could not find any line items in this document.",
        "} nothing here {",
        '{"items": [{"description_raw": "GI Pipe",}',
        '{"items": [{"description_raw": "GI Pipe"}',
        '{"items": [1, 2,]}',
        "{not json at all}",
    ],
)
def test_recover_items_returns_empty_for_missing_or_broken_json(reply):
    assert recover_items(reply) == []


@pytest.mark.parametrize(
    "reply",
    [
        '{"rows": [{"description_raw": "x"}]}',
        '{"items": null}',
        '{"items": "GI Pipe"}',
        '{"items": {"description_raw": "GI Pipe"}}',
    ],
)
def test_recover_items_requires_items_list(reply):
    assert recover_items(reply) == []


def test_recover_items_spans_first_open_to_last_close_brace():
    reply = 'note {"items": [{"description_raw": "A"}]} trailing {"other": 1}'
    # The span covers both objects, which is not valid JSON.
    assert locate_json_block(reply) == '{"items": [{"description_raw": "A"}]} trailing {"other": 1}'
    assert recover_items(reply) == []


def test_recover_items_drops_control_chars_inside_strings():
    reply = '{"items": [{"description_raw": "Valve\x00\x07 DN50\x1f"}]}'
    assert recover_items(reply) == [{"description_raw": "Valve DN50"}]


def test_strip_control_chars_keeps_tabs_newlines_and_non_latin_text():
    text = "صمام\tبوابة\r\n阀门\x0b\x0c 10 nos\n\x01\x08\x0e\x1f"
    assert strip_control_chars(text) == "صمام\tبوابة\r\n阀门 10 nos\n"


def test_strip_control_chars_is_idempotent():
    text = "A\x00B\x0bC\tD\nE\x1fF é ü 中 ع \x7f"
    once = strip_control_chars(text)
    assert strip_control_chars(once) == once
    # DEL and everything above U+001F is left alone.
    assert "\x7f" in once


def test_recover_items_preserves_arabic_and_cjk_values():
    reply = '{"items": [{"description_raw": "أنبوب حديد مجلفن", "size_raw": "直径 50mm"}]}'
    assert recover_items(reply) == [
        {"description_raw": "أنبوب حديد مجلفن", "size_raw": "直径 50mm"}
    ]
