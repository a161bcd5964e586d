"""Tests for content hashing."""

import hashlib

import pytest

from knowledge_engine.integrity.hashing import HASH_LENGTH, compute_content_hash, hash_file


def test_hash_is_truncated_sha256():
    expected = hashlib.sha256(b"hello").hexdigest()[:16]
    assert compute_content_hash("hello") == expected
    assert len(compute_content_hash("hello")) == HASH_LENGTH


def test_surrounding_whitespace_ignored():
    assert compute_content_hash("  hello\n\n") == compute_content_hash("hello")


def test_inner_whitespace_matters():
    assert compute_content_hash("a b") != compute_content_hash("a  b")


def test_deterministic():
    assert compute_content_hash("def f(): pass") == compute_content_hash("def f(): pass")


def test_hash_file_matches_content(tmp_path):
    path = tmp_path / "module.py"
    path.write_text("x = 1\n", encoding="utf-8")
    assert hash_file(path) == compute_content_hash("x = 1")


def test_hash_file_tolerates_invalid_utf8(tmp_path):
    path = tmp_path / "blob.bin"
    path.write_bytes(b"\xff\xfe binary")
    assert len(hash_file(path)) == HASH_LENGTH


def test_hash_file_distinguishes_invalid_bytes(tmp_path):
    path = tmp_path / "blob.bin"
    path.write_bytes(b"data\xff")
    before = hash_file(path)
    path.write_bytes(b"data\xfe")
    assert hash_file(path) != before


def test_hash_file_detects_appended_byte(tmp_path):
    path = tmp_path / "module.py"
    path.write_bytes(b"x = 1\n")
    before = hash_file(path)
    path.write_bytes(b"x = 1\n;")
    assert hash_file(path) != before


def test_bytes_and_text_hash_alike():
    assert compute_content_hash(b"  caf\xc3\xa9\n") == compute_content_hash("café")


def test_hash_file_missing_raises(tmp_path):
    with pytest.raises(OSError):
        hash_file(tmp_path / "gone.py")
