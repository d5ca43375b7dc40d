"""
Unit tests for the Headers collection.
"""

import pytest

from interceptor.http import Headers


class TestHeaders:
    """Tests for case-insensitive, multi-valued headers."""

    def test_lookup_ignores_case(self):
        headers = Headers()
        headers.set("Content-Type", "text/plain")

        assert headers.get("content-type") == "text/plain"
        assert headers["CONTENT-TYPE"] == "text/plain"
        assert "content-type" in headers

    def test_add_keeps_existing_values(self):
        headers = Headers()
        headers.add("Set-Cookie", "a=1")
        headers.add("set-cookie", "b=2")

        assert headers.get("Set-Cookie") == "a=1"
        assert headers.get_all("SET-COOKIE") == ["a=1", "b=2"]
        # Second add reuses the first spelling
        assert headers.items() == [("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")]

    def test_set_replaces_every_value_in_place(self):
        headers = Headers([("ETag", "a1"), ("Server", "x"), ("ETag", "a2")])

        headers.set("etag", "b1")

        assert headers.items() == [("ETag", "b1"), ("Server", "x")]

    def test_set_appends_new_name(self):
        headers = Headers([("Server", "x")])

        headers["X-Request-ID"] = "42"

        assert headers.names() == ["Server", "X-Request-ID"]

    def test_setdefault(self):
        headers = Headers()

        assert headers.setdefault("Server", "one") == "one"
        assert headers.setdefault("server", "two") == "one"
        assert headers.get_all("Server") == ["one"]

    def test_remove_and_delete(self):
        headers = Headers([("A", "1"), ("B", "2"), ("a", "3")])

        headers.remove("a")
        headers.remove("missing")

        assert headers.items() == [("B", "2")]
        with pytest.raises(KeyError):
            del headers["missing"]
        del headers["b"]
        assert len(headers) == 0

    def test_missing_key_raises(self):
        with pytest.raises(KeyError):
            Headers()["X-Missing"]

    def test_len_and_iteration_count_distinct_names(self):
        headers = Headers([("Set-Cookie", "a=1"), ("Set-Cookie", "b=2"), ("ETag", "a1")])

        assert len(headers) == 2
        assert list(headers) == ["Set-Cookie", "ETag"]

    def test_copy_is_independent(self):
        headers = Headers([("ETag", "a1")])
        snapshot = headers.copy()

        headers.add("ETag", "a2")

        assert snapshot.get_all("ETag") == ["a1"]
        assert snapshot != headers

    def test_equality_ignores_name_case(self):
        assert Headers([("ETag", "a1")]) == Headers([("etag", "a1")])

    @pytest.mark.parametrize("name, value", [
        ("X-Bad\r\nInjected", "1"),
        ("", "1"),
        ("Bad Name", "1"),
        ("X-Value", "line\r\nInjected: yes"),
    ])
    def test_rejects_invalid_fields(self, name, value):
        with pytest.raises(ValueError):
            Headers().add(name, value)
