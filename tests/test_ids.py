"""Tests for identifier generation."""

import threading

import pytest

from autosocket import ids


class TestNextSequential:
    def test_format(self):
        value = ids.next_sequential()
        assert len(value) == 16
        assert ids.is_identifier(value)
        assert value == value.upper()

    def test_unique_within_a_burst(self):
        values = [ids.next_sequential() for _ in range(5000)]
        assert len(set(values)) == len(values)

    def test_unique_across_threads(self):
        results = []
        lock = threading.Lock()

        def worker():
            batch = [ids.next_sequential() for _ in range(500)]
            with lock:
                results.extend(batch)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(results) == 4000
        assert len(set(results)) == 4000


class TestNextRandom:
    def test_format(self):
        value = ids.next_random()
        assert ids.is_identifier(value)
        assert value == value.upper()

    def test_values_differ(self):
        assert len({ids.next_random() for _ in range(100)}) == 100


class TestIsIdentifier:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("0123456789ABCDEF", True),
            ("0123456789abcdef", True),
            ("0123456789ABCDE", False),
            ("0123456789ABCDEF0", False),
            ("0123456789ABCDEG", False),
            ("", False),
        ],
    )
    def test_values(self, value, expected):
        assert ids.is_identifier(value) is expected
