"""Tests for grb.codec: record encoding, legacy records, tolerant decoding."""
import json

import pytest

from grb import codec
from grb.types import Snippet


class TestEncode:
    def test_encodes_json_array(self):
        data = codec.encode(Snippet(1, "hello", "t", "a", True, 2, 1700000000))
        assert json.loads(data.decode("utf-8")) == ["hello", "t", "a", True, 2, 1700000000]

    @pytest.mark.parametrize("text", [
        "a|b|c",
        "line one\nline two",
        'quotes " and \\ backslash',
        "[not json",
        "emoji 📋 and café",
        "",
    ])
    def test_text_survives_roundtrip(self, text):
        original = Snippet(7, text, tag="x|y", alias="al|ias", pinned=True, use_count=3, updated_at=42)
        assert codec.decode(codec.encode(original), 7) == original


class TestDecodeTolerance:
    def test_short_json_record_defaults(self):
        s = codec.decode(b'["only text"]', 3)
        assert s.id == 3
        assert s.text == "only text"
        assert (s.tag, s.alias, s.pinned, s.use_count, s.updated_at) == ("", "", False, 0, 0)

    def test_empty_json_array(self):
        s = codec.decode(b"[]", 1)
        assert s.text == ""

    def test_extra_fields_ignored(self):
        s = codec.decode(b'["t","g","a",false,1,2,"future"]', 1)
        assert (s.text, s.use_count, s.updated_at) == ("t", 1, 2)

    def test_negative_count_clamped(self):
        assert codec.decode(b'["t","","",false,-4,0]', 1).use_count == 0

    def test_memoryview_input(self):
        s = codec.decode(memoryview(b'["from sqlite"]'), 9)
        assert s.text == "from sqlite"


class TestLegacyRecords:
    def test_full_legacy_record(self):
        s = codec.decode(b"buy milk|errand|milk|true|3|1700000000", 1)
        assert s.text == "buy milk"
        assert s.tag == "errand"
        assert s.alias == "milk"
        assert s.pinned is True
        assert s.use_count == 3
        assert s.updated_at == 1700000000

    def test_legacy_missing_trailing_fields(self):
        s = codec.decode(b"just text", 2)
        assert s.text == "just text"
        assert s.tag == ""
        assert s.pinned is False
        assert s.use_count == 0

    def test_legacy_partial_fields(self):
        s = codec.decode(b"text|tag", 2)
        assert (s.text, s.tag, s.alias) == ("text", "tag", "")

    def test_legacy_bad_numbers_decode_as_zero(self):
        s = codec.decode(b"t|g|a|false|lots|yesterday", 1)
        assert s.use_count == 0
        assert s.updated_at == 0

    def test_legacy_pinned_only_for_literal_true(self):
        assert codec.decode(b"t|g|a|TRUE|0|0", 1).pinned is False
        assert codec.decode(b"t|g|a|false|0|0", 1).pinned is False

    def test_legacy_text_starting_with_bracket(self):
        s = codec.decode(b"[draft] notes|work||false|0|0", 4)
        assert s.text == "[draft] notes"
        assert s.tag == "work"


class TestUndecodableInput:
    def test_lone_surrogate_is_stored(self):
        data = codec.encode(Snippet(1, "bad \ud800 char"))
        s = codec.decode(data, 1)
        assert s.text.startswith("bad ")
        assert s.text.endswith(" char")
        assert "\ud800" not in s.text

    def test_invalid_utf8_record_decodes(self):
        s = codec.decode(b"\xff\xfe|tag|", 9)
        assert s.id == 9
        assert s.tag == "tag"
