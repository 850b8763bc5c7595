import pytest

from llm.response_parser import parse_json_array
from makemyday.errors import EmptyResponseError, ResponseParseError


def test_plain_array():
    assert parse_json_array('[{"title": "a"}]') == [{"title": "a"}]


def test_array_wrapped_in_prose_and_fences():
    content = 'Sure! Here you go:\n```json\n[{"title": "Call mom"}]\n```\nGood luck.'
    assert parse_json_array(content) == [{"title": "Call mom"}]


def test_empty_content():
    with pytest.raises(EmptyResponseError):
        parse_json_array("")
    with pytest.raises(EmptyResponseError):
        parse_json_array(None)


def test_garbage_is_a_parse_error():
    with pytest.raises(ResponseParseError) as exc:
        parse_json_array("INVALID OUTPUT")
    assert str(exc.value) == "Could not parse AI response"


def test_object_is_not_an_array():
    with pytest.raises(ResponseParseError):
        parse_json_array('{"title": "x"}')


def test_greedy_match_spanning_two_arrays_fails():
    # first "[" to last "]" is not valid JSON, and neither is the whole reply
    with pytest.raises(ResponseParseError):
        parse_json_array('Options [1] or [2]')


def test_empty_array_is_valid():
    assert parse_json_array("Nothing to do: []") == []


def test_whole_reply_is_not_retried_when_a_bracket_span_exists():
    # valid JSON as a whole (a string), but the bracket span "[1] x [2]" is not
    with pytest.raises(ResponseParseError) as exc:
        parse_json_array('"[1] x [2]"')
    assert str(exc.value) == "Could not parse AI response"


def test_whole_reply_is_tried_without_brackets():
    with pytest.raises(ResponseParseError) as exc:
        parse_json_array('"just a string"')
    assert str(exc.value) == "AI response is not a JSON array"
