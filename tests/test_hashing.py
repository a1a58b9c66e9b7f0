"""Tests for content hashing utilities."""

import hashlib

from retort.utils.hashing import calculate_content_hash


class TestCalculateContentHash:
    """Tests for calculate_content_hash function."""

    def test_same_content_produces_same_hash(self):
        """Test that identical content produces the same hash."""
        assert calculate_content_hash("test content") == calculate_content_hash(
            "test content"
        )

    def test_different_content_produces_different_hash(self):
        assert calculate_content_hash("content 1") != calculate_content_hash("content 2")

    def test_hash_is_64_characters(self):
        """Test that hash is 64 characters (SHA-256 hex)."""
        hash_value = calculate_content_hash("test content")

        assert len(hash_value) == 64
        assert hash_value.isalnum()

    def test_str_and_bytes_agree(self):
        """Test that text is hashed as its UTF-8 encoding."""
        assert calculate_content_hash("héllo") == calculate_content_hash(
            "héllo".encode("utf-8")
        )

    def test_matches_sha256(self):
        assert calculate_content_hash(b"abc") == hashlib.sha256(b"abc").hexdigest()

    def test_empty_content(self):
        assert (
            calculate_content_hash("")
            == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )
