# tests/test_captions.py
from stsync.services.captions import (
    caption_char_lengths,
    count_marks,
    normalize_for_similarity,
    split_into_captions,
    strip_marks,
)


def test_split_keeps_leading_text_without_mark():
    captions = split_into_captions("word1@word2")
    assert [c.text for c in captions] == ["word1", "@word2"]
    assert [c.mark_count for c in captions] == [0, 1]
    assert [c.length for c in captions] == [5, 6]


def test_split_reproduces_input():
    for text in ["@a @b @c\n", "lead @x", "@@x", "no marks at all", "@"]:
        captions = split_into_captions(text)
        assert "".join(c.text for c in captions) == text
        assert all(c.text.startswith("@") for c in captions[1:])
        assert all(c.mark_count <= 1 for c in captions)


def test_split_is_total():
    assert [c.text for c in split_into_captions("")] == [""]
    assert [c.text for c in split_into_captions("plain")] == ["plain"]
    assert [c.text for c in split_into_captions("@@x")] == ["@", "@x"]


def test_normalize_and_strip():
    assert normalize_for_similarity("@The Fox") == " the fox"
    assert strip_marks("@The @Fox") == "The Fox"
    assert count_marks("a@b@c") == 2


def test_caption_char_lengths_skips_leading_text():
    assert caption_char_lengths("intro @one two @three\n") == [8, 6]
    assert caption_char_lengths("no marks") == []
