import pytest

from spectreidx.models import (
    AddressTransaction,
    Block,
    BlockParent,
    BlockTransaction,
    DatabaseDetails,
    Hash,
    ScriptTransaction,
    Subnetwork,
    TableDetails,
    Transaction,
    TransactionAcceptance,
    TransactionInput,
    TransactionOutput,
    Var,
)


def make_hash(n: int) -> Hash:
    return Hash(bytes([n]) * 32)


def test_hash_as_bytes_round_trip():
    raw = bytes(range(32))
    h = Hash(raw)
    assert h.as_bytes() == raw
    assert bytes(h) == raw


def test_hash_hex_round_trip():
    raw = bytes(range(32))
    h = Hash(raw)
    assert Hash.from_hex(h.hex()) == h
    assert str(h) == h.hex()
    assert len(h.hex()) == 64


def test_hash_hex_is_lowercase():
    h = Hash(b"\xab" * 32)
    assert h.hex() == "ab" * 32


def test_hash_accepts_bytearray():
    raw = bytearray(b"\x01" * 32)
    h = Hash(raw)
    assert h.as_bytes() == bytes(raw)


@pytest.mark.parametrize("size", [0, 31, 33])
def test_hash_wrong_length(size):
    with pytest.raises(ValueError):
        Hash(b"\x00" * size)


def test_hash_wrong_type():
    with pytest.raises(TypeError):
        Hash("00" * 32)


def test_hash_invalid_hex():
    with pytest.raises(ValueError):
        Hash.from_hex("zz" * 32)


def test_hash_equality_and_set():
    assert make_hash(1) == make_hash(1)
    assert make_hash(1) != make_hash(2)
    assert len({make_hash(1), make_hash(1), make_hash(2)}) == 2


def test_address_transaction_identity_ignores_block_time():
    a = AddressTransaction("spectre:qaddr", make_hash(1), 100)
    b = AddressTransaction("spectre:qaddr", make_hash(1), 200)
    c = AddressTransaction("spectre:qother", make_hash(1), 100)
    assert a == b
    assert a != c
    assert len({a, b, c}) == 2


def test_block_identity_is_hash():
    a = Block(make_hash(3), blue_score=1, timestamp=5)
    b = Block(make_hash(3), blue_score=2, merge_set_blues_hashes=[make_hash(4)])
    assert a == b
    assert hash(a) == hash(b)
    assert a != Block(make_hash(4))


def test_block_parent_and_block_transaction_full_identity():
    assert BlockParent(make_hash(1), make_hash(2)) == BlockParent(make_hash(1), make_hash(2))
    assert BlockParent(make_hash(1), make_hash(2)) != BlockParent(make_hash(2), make_hash(1))
    rels = {BlockTransaction(make_hash(1), make_hash(2)), BlockTransaction(make_hash(1), make_hash(2))}
    assert len(rels) == 1


def test_script_transaction_identity():
    a = ScriptTransaction(b"\x20\x01", make_hash(1), 1)
    b = ScriptTransaction(b"\x20\x01", make_hash(1), 2)
    c = ScriptTransaction(b"\x20\x02", make_hash(1), 1)
    assert a == b
    assert a != c


def test_subnetwork_identity_ignores_id():
    a = Subnetwork(1, "0000")
    b = Subnetwork(2, "0000")
    assert a == b
    assert len({a, b, Subnetwork(1, "0100")}) == 2


def test_transaction_identity_is_id():
    a = Transaction(make_hash(5), subnetwork_id=1, mass=10)
    b = Transaction(make_hash(5), payload=b"x")
    assert a == b
    assert a != Transaction(make_hash(6))


def test_transaction_acceptance_optional_tx():
    a = TransactionAcceptance(None, make_hash(1))
    b = TransactionAcceptance(None, make_hash(1))
    assert a == b
    assert a != TransactionAcceptance(make_hash(2), make_hash(1))


def test_transaction_input_identity_and_mutation():
    tin = TransactionInput(make_hash(1), 0, previous_outpoint_hash=make_hash(2), previous_outpoint_index=1)
    other = TransactionInput(make_hash(1), 0)
    before = hash(tin)
    tin.previous_outpoint_script = b"\x01"
    tin.previous_outpoint_amount = 500
    assert tin == other
    assert hash(tin) == before
    assert tin != TransactionInput(make_hash(1), 1)


def test_transaction_output_identity():
    a = TransactionOutput(make_hash(1), 2, amount=5)
    b = TransactionOutput(make_hash(1), 2, amount=6)
    assert a == b
    assert len({a, b, TransactionOutput(make_hash(1), 3)}) == 2


def test_var_and_details_fields():
    v = Var("block_checkpoint", "ab" * 32)
    assert v.key == "block_checkpoint"
    details = DatabaseDetails("db", "public", 10, 1, 0, 3, 100)
    assert details.max_connections == 100
    table = TableDetails("blocks", 2048, 1024, 7)
    assert (table.name, table.approximate_row_count) == ("blocks", 7)