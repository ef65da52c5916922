import pytest

from shared.helper.text_chunker import split_text


def test_short_text_is_single_unchanged_chunk():
    text = "A short note."
    assert split_text(text, max_chunk_size=1000) == [text]


def test_text_exactly_at_limit_is_single_chunk():
    text = "x" * 1000
    assert split_text(text, max_chunk_size=1000) == [text]


def test_empty_text_yields_single_empty_chunk():
    assert split_text("") == [""]


def test_hard_cuts_without_whitespace():
    chunks = split_text("A" * 2500, max_chunk_size=1000, overlap=100)
    assert [len(chunk) for chunk in chunks] == [1000, 1000, 700]


def test_chunks_respect_max_size():
    text = ("Lorem ipsum dolor sit amet. " * 200)[:5000]
    for chunk in split_text(text, max_chunk_size=300, overlap=50):
        assert len(chunk) <= 300


def test_cuts_prefer_sentence_boundaries():
    text = ("Lorem ipsum dolor sit amet. " * 90)[:2500]
    chunks = split_text(text, max_chunk_size=1000, overlap=100)
    assert len(chunks) == 3
    assert chunks[0].endswith(".")
    assert chunks[1].endswith(".")


def test_cuts_prefer_line_breaks():
    paragraph = "word " * 30
    text = "\n".join([paragraph.strip()] * 20)
    chunks = split_text(text, max_chunk_size=400, overlap=0)
    for chunk in chunks[:-1]:
        assert chunk.endswith("word")
        assert len(chunk) <= 400


def test_falls_back_to_whitespace_outside_lookback():
    text = "abcdefghij " * 300
    chunks = split_text(text, max_chunk_size=100, overlap=0, lookback=0)
    for chunk in chunks:
        assert not chunk.startswith(" ")
        assert "abcdefghij" in chunk


def test_consecutive_chunks_overlap():
    text = "A" * 2500
    chunks = split_text(text, max_chunk_size=1000, overlap=100)
    assert chunks[0][-100:] == chunks[1][:100]


def test_every_token_is_covered():
    tokens = [f"token{i}." for i in range(600)]
    chunks = split_text(" ".join(tokens), max_chunk_size=500, overlap=80)
    covered = {word for chunk in chunks for word in chunk.split()}
    assert set(tokens) <= covered


@pytest.mark.parametrize("overlap", [0, 999, 1000, 5000])
def test_terminates_for_any_overlap(overlap):
    chunks = split_text("B" * 3000, max_chunk_size=1000, overlap=overlap)
    assert chunks
    assert chunks[-1].endswith("B")
    assert len(chunks) <= 3000


def test_is_deterministic():
    text = ("Sentence one. Sentence two!\nAnother line? " * 100)
    assert split_text(text, 250, 40) == split_text(text, 250, 40)


def test_does_not_split_multibyte_characters():
    text = "ü" * 2500
    chunks = split_text(text, max_chunk_size=1000, overlap=100)
    assert all(set(chunk) == {"ü"} for chunk in chunks)
    for chunk in chunks:
        chunk.encode("utf-8")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_chunk_size": 0},
        {"overlap": -1},
        {"lookback": -5},
    ],
)
def test_rejects_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        split_text("some text", **kwargs)
