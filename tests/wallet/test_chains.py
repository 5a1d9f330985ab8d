"""Tests: chain registry and exact unit conversion.

Invariants:
    - to_native/to_smallest are exact; 1 wei survives the round trip
    - amounts finer than the chain's decimals are rejected, never rounded
"""

from decimal import Decimal

import pytest

from wallet_keeper.wallet.chains import CHAINS, get_chain, list_chain_names


def test_one_wei_is_exact():
    base = get_chain("base")

    assert base.to_native(1) == Decimal("0.000000000000000001")
    assert base.to_smallest(base.to_native(1)) == 1


def test_large_balance_has_no_float_drift():
    base = get_chain("base")
    wei = 123_456_789_012_345_678_901

    assert base.to_native(wei) == Decimal("123.456789012345678901")


def test_to_smallest_accepts_strings():
    assert get_chain("ethereum").to_smallest("0.2") == 200_000_000_000_000_000


def test_excess_precision_rejected():
    with pytest.raises(ValueError):
        get_chain("base").to_smallest("0.0000000000000000001")


@pytest.mark.parametrize("bad", [1.5, "100", True, None])
def test_to_native_requires_int(bad):
    with pytest.raises(TypeError):
        get_chain("base").to_native(bad)


def test_negative_balance_rejected():
    with pytest.raises(ValueError):
        get_chain("base").to_native(-1)


def test_unknown_chain():
    with pytest.raises(KeyError, match="Available"):
        get_chain("dogechain")


def test_registry_names_match_keys():
    assert list_chain_names() == list(CHAINS)
    for name, chain in CHAINS.items():
        assert chain.name == name


def test_explorer_urls():
    base = get_chain("base")

    assert base.tx_url("0xabc") == "https://basescan.org/tx/0xabc"
    assert base.address_url("0xdef") == "https://basescan.org/address/0xdef"
