# tests/unit/tagging/test_unit_response_parser.py — v1
"""Tests for tagging/response_parser.py — lenient JSON recovery."""

from __future__ import annotations

import pytest

from lumbago.tagging.response_parser import parse_json_array, parse_json_object, strip_fences


class TestStripFences:
    def test_json_fence(self):
        assert strip_fences('```json\n[1]\n```') == "[1]"

    def test_plain_fence(self):
        assert strip_fences("```\n{}\n```") == "{}"


class TestParseJsonArray:
    def test_plain_array(self):
        assert parse_json_array('[{"a": 1}]') == [{"a": 1}]

    def test_fenced_array(self):
        assert parse_json_array('```json\n[{"a": 1}]\n```') == [{"a": 1}]

    def test_array_inside_prose(self):
        text = 'Here are the results:\n[{"a": 1}, {"a": 2}]\nHope this helps.'
        assert parse_json_array(text) == [{"a": 1}, {"a": 2}]

    def test_wrapped_in_object(self):
        assert parse_json_array('{"results": [{"a": 1}]}') == [{"a": 1}]

    def test_object_is_not_an_array(self):
        assert parse_json_array('{"a": 1}') == []

    @pytest.mark.parametrize("text", [None, "", "   ", "no json here", "[broken"])
    def test_garbage_is_empty(self, text):
        assert parse_json_array(text) == []


class TestParseJsonObject:
    def test_object(self):
        assert parse_json_object('{"playlistName": "x"}') == {"playlistName": "x"}

    def test_object_inside_prose(self):
        assert parse_json_object('Sure! {"a": 1} done') == {"a": 1}

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_json_object("[1, 2]")

    def test_garbage(self):
        with pytest.raises(ValueError):
            parse_json_object("nothing")
