import pytest

from conftest import sentence
from siteqa.ingestion.chunker import build_chunks, chunk_id_prefix, chunk_text, split_sentences


def test_short_text_is_single_chunk():
    assert chunk_text("One sentence. Two sentences.", 1000) == ["One sentence. Two sentences."]


def test_empty_text_is_single_empty_chunk():
    assert chunk_text("", 1000) == [""]


def test_split_sentences_on_terminal_punctuation():
    assert split_sentences("A b. C d! E f? G") == ["A b.", "C d!", "E f?", "G"]


def test_greedy_packing_counts_separator():
    text = "aaaa. bbbb. cccc."
    # "aaaa. bbbb." is 11 chars, so it fits 11 but not 10
    assert chunk_text(text, 11) == ["aaaa. bbbb.", "cccc."]
    assert chunk_text(text, 10) == ["aaaa.", "bbbb.", "cccc."]


def test_oversized_sentence_emitted_whole():
    long_sentence = "x" * 50 + "."
    chunks = chunk_text(f"Short. {long_sentence} Tail.", 20)
    assert chunks == ["Short.", long_sentence, "Tail."]


@pytest.mark.parametrize("max_size", [50, 120, 400])
def test_chunks_round_trip_and_respect_bound(max_size):
    text = " ".join(f"Sentence number {i} has a few words in it." for i in range(40))
    chunks = chunk_text(text, max_size)
    assert " ".join(chunks) == text
    assert all(len(c) <= max_size for c in chunks)


def test_1400_char_page_makes_two_chunks():
    text = " ".join([sentence("lorem"), sentence("ipsum"), sentence("zebra")])
    assert len(text) == 1400

    chunks = build_chunks("https://example.com", "Example", text, 1000)

    assert len(chunks) == 2
    assert [c.metadata["chunk_index"] for c in chunks] == [0, 1]
    assert all(c.metadata["total_chunks"] == 2 for c in chunks)
    assert "zebra" not in chunks[0].content
    assert chunks[1].content == sentence("zebra")


def test_build_chunks_ids_and_metadata():
    chunks = build_chunks("https://example.com", "Example", "Hello   world.\n\nBye.", 1000)
    assert len(chunks) == 1
    chunk = chunks[0]
    assert chunk.id == f"{chunk_id_prefix('https://example.com')}-0"
    assert chunk.content == "Hello world. Bye."
    assert chunk.metadata == {"url": "https://example.com", "title": "Example", "chunk_index": 0, "total_chunks": 1}


def test_build_chunks_ids_are_stable_and_url_scoped():
    first = build_chunks("https://a.com", "A", "Text.", 1000)
    again = build_chunks("https://a.com", "A", "Different text.", 1000)
    other = build_chunks("https://b.com", "B", "Text.", 1000)
    assert first[0].id == again[0].id
    assert first[0].id != other[0].id


def test_build_chunks_empty_content():
    assert build_chunks("https://example.com", "Example", "  \n ", 1000) == []
