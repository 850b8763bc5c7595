import json

import pytest

from llm.stream_assembler import StreamResponseAssembler, StreamState, extract_delta_content


def _frame(content: str) -> str:
    return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}, ensure_ascii=False) + "\n\n"


def _stream(tokens):
    return ("".join(_frame(t) for t in tokens) + "data: [DONE]\n\n").encode("utf-8")


def test_two_chunk_scenario():
    seen = []
    a = StreamResponseAssembler(on_progress=lambda token, full: seen.append((token, full)))

    a.feed(b'data: {"choices":[{"delta":{"content":"[{\\"ti"}}]}\n\ndata: {"choi')
    a.feed(b'ces":[{"delta":{"content":"tle\\":\\"x\\"}]"}}]}\n\ndata: [DONE]\n\n')
    content = a.finish()

    assert content == '[{"title":"x"}]'
    assert seen == [('[{"ti', '[{"ti'), ('tle":"x"}]', '[{"title":"x"}]')]
    assert a.state is StreamState.DONE


@pytest.mark.parametrize("size", [1, 2, 3, 5, 13, 64, 4096])
def test_any_chunking_gives_same_content(size):
    tokens = ["计划", "：", "Buy 🥛", " milk", "，然后 run"]
    raw = _stream(tokens)
    a = StreamResponseAssembler()
    for i in range(0, len(raw), size):
        a.feed(raw[i:i + size])
    assert a.finish() == "".join(tokens)
    assert a.tokens == tokens


def test_malformed_line_is_skipped_and_stream_continues():
    a = StreamResponseAssembler()
    a.feed(_frame("a").encode())
    a.feed(b"data: {broken json\n\n")
    a.feed(_frame("b").encode())
    assert a.finish() == "ab"
    assert a.malformed_lines == 1


def test_non_data_lines_and_empty_deltas_are_ignored():
    a = StreamResponseAssembler()
    a.feed(": keep-alive\n\nevent: ping\n\n")
    a.feed('data: {"choices":[{"delta":{"role":"assistant"}}]}\n\n')
    a.feed('data: {"choices":[{"delta":{"content":""}}]}\n\n')
    a.feed('data: {"choices":[]}\n\n')
    assert a.finish() == ""
    assert a.tokens == []


def test_tail_without_trailing_newline_is_processed():
    a = StreamResponseAssembler()
    a.feed(_frame("x").rstrip("\n"))
    assert a.full_content == ""
    assert a.finish() == "x"


def test_finish_is_idempotent_and_feeding_after_it_fails():
    a = StreamResponseAssembler()
    a.feed(_frame("x"))
    assert a.finish() == "x"
    assert a.finish() == "x"
    with pytest.raises(RuntimeError):
        a.feed(b"data: more\n")


def test_progress_callback_sees_growing_content():
    fulls = []
    a = StreamResponseAssembler(on_progress=lambda token, full: fulls.append(full))
    a.feed(_stream(["a", "b", "c"]))
    a.finish()
    assert fulls == ["a", "ab", "abc"]


def test_extract_delta_content():
    assert extract_delta_content({"choices": [{"delta": {"content": "hi"}}]}) == "hi"
    assert extract_delta_content({"choices": [{"delta": {"content": 5}}]}) is None
    assert extract_delta_content([]) is None
