"""
Tests for src/bayesnet/entropy.py.
"""

import pytest

from src.bayesnet import entropy
from src.bayesnet.errors import EntropyUnavailableError


class TestReadSeed:
    """Tests for OS seed acquisition."""

    def test_reads_sixteen_bytes(self):
        seed = entropy.read_seed()
        assert isinstance(seed, bytes)
        assert len(seed) == entropy.SEED_BYTES == 16

    def test_os_failure_raises(self, monkeypatch):
        def broken(n):
            raise OSError("no entropy source")

        monkeypatch.setattr(entropy.os, "urandom", broken)
        with pytest.raises(EntropyUnavailableError, match="RNG seed failed"):
            entropy.read_seed()

    def test_short_read_raises(self, monkeypatch):
        monkeypatch.setattr(entropy.os, "urandom", lambda n: b"\x00" * (n - 1))
        with pytest.raises(EntropyUnavailableError):
            entropy.read_seed()


class TestMakeRng:
    """Tests for make_rng."""

    def test_fixed_seed_is_reproducible(self):
        first = entropy.make_rng(123).random(5)
        second = entropy.make_rng(123).random(5)
        assert list(first) == list(second)

    def test_unseeded_uses_os_entropy(self, monkeypatch):
        calls = []
        real = entropy.os.urandom

        def counting(n):
            calls.append(n)
            return real(n)

        monkeypatch.setattr(entropy.os, "urandom", counting)
        value = entropy.make_rng().random()
        assert 0.0 <= value < 1.0
        assert calls == [16]

    def test_unseeded_failure_propagates(self, monkeypatch):
        def broken(n):
            raise NotImplementedError

        monkeypatch.setattr(entropy.os, "urandom", broken)
        with pytest.raises(EntropyUnavailableError):
            entropy.make_rng()
