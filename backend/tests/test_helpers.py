"""Helper utility tests: query sanitation, chunking, truncation."""
import uuid

import pytest

from vibe_search.utils.helpers import chunk_list, new_session_id, sanitize_prompt, truncate, utc_now


class TestSanitizePrompt:
    def test_collapses_whitespace(self):
        assert sanitize_prompt("  wireless \n\t headphones  ") == "wireless headphones"

    def test_strips_sql_verbs_case_insensitive(self):
        assert sanitize_prompt("select red shoes; DROP table") == "red shoes; table"

    def test_sql_words_inside_other_words_are_kept(self):
        assert sanitize_prompt("updated selection") == "updated selection"

    def test_strips_script_blocks(self):
        assert sanitize_prompt("lamp <script>alert('x')</script> desk") == "lamp desk"

    def test_only_unsafe_tokens_becomes_empty(self):
        assert sanitize_prompt("DELETE <script>x</script>") == ""

    @pytest.mark.parametrize("text", ["Premium Wireless Headphones", "cotton t-shirt", "4K TV 55\""])
    def test_plain_queries_unchanged(self, text):
        assert sanitize_prompt(text) == text


def test_chunk_list():
    assert chunk_list(list(range(12)), 10) == [list(range(10)), [10, 11]]
    assert chunk_list([], 10) == []


def test_truncate():
    assert truncate("short", 10) == "short"
    assert truncate("a" * 20, 10) == "aaaaaaa..."


def test_new_session_id_is_uuid():
    assert uuid.UUID(new_session_id())


def test_utc_now_is_aware():
    assert utc_now().tzinfo is not None
