import pytest
from web3 import Web3

from riddler.commitment import DIGEST_SIZE, commit, commit_hex, matches, pack_text

KECCAK_EMPTY = "0xc5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"


def test_matches_solidity_keccak_of_packed_string():
    want = Web3.solidity_keccak(["bytes"], [pack_text("juice")])
    assert commit("juice") == bytes(want)
    assert commit("juice") == bytes(Web3.solidity_keccak(["string"], ["juice"]))


def test_empty_string_is_keccak_of_nothing():
    assert commit_hex("") == KECCAK_EMPTY


def test_packed_encoding_is_utf8():
    assert pack_text("juice") == b"juice"
    assert pack_text("café") == "café".encode("utf-8")


def test_deterministic_and_fixed_size():
    assert commit("juice") == commit("juice")
    assert len(commit("juice")) == DIGEST_SIZE
    assert len(commit("x" * 10_000)) == DIGEST_SIZE


def test_distinct_texts_give_distinct_commitments():
    texts = ["juice", "Juice", "juice ", " juice", "wrong answer", "", "jüice"]
    assert len({commit(t) for t in texts}) == len(texts)


def test_matches():
    assert matches("juice", commit("juice"))
    assert not matches("wrong answer", commit("juice"))


def test_rejects_non_text():
    with pytest.raises(ValueError):
        commit(b"juice")
