"""Row models for the indexer database tables and the hash type they use."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

HASH_SIZE = 32

BlueWork = bytes
Nonce = bytes
Payload = bytes


@dataclass(frozen=True)
class Hash:
    """A 32-byte block or transaction hash, stored as BYTEA."""

    value: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.value, (bytes, bytearray, memoryview)):
            raise TypeError(f"Hash expects bytes, got {type(self.value).__name__}")
        raw = bytes(self.value)
        if len(raw) != HASH_SIZE:
            raise ValueError(f"Hash must be {HASH_SIZE} bytes, got {len(raw)}")
        object.__setattr__(self, "value", raw)

    @classmethod
    def from_hex(cls, text: str) -> "Hash":
        """Parse a hash from its hexadecimal representation."""
        try:
            raw = bytes.fromhex(text)
        except ValueError as exc:
            raise ValueError(f"Invalid hash hex string: {text!r}") from exc
        return cls(raw)

    def as_bytes(self) -> bytes:
        """Return the raw 32 bytes of the hash."""
        return self.value

    def hex(self) -> str:
        """Return the lowercase hexadecimal form of the hash."""
        return self.value.hex()

    def __str__(self) -> str:
        return self.hex()

    def __bytes__(self) -> bytes:
        return self.value


@dataclass(unsafe_hash=True)
class AddressTransaction:
    """Relation between an address and a transaction; identity is (address, transaction_id)."""

    address: str
    transaction_id: Hash
    block_time: int = field(compare=False)


@dataclass(unsafe_hash=True)
class Block:
    """A block header row; identity is the block hash."""

    hash: Hash
    accepted_id_merkle_root: Optional[Hash] = field(default=None, compare=False)
    merge_set_blues_hashes: Optional[list[Hash]] = field(default=None, compare=False)
    merge_set_reds_hashes: Optional[list[Hash]] = field(default=None, compare=False)
    selected_parent_hash: Optional[Hash] = field(default=None, compare=False)
    bits: Optional[int] = field(default=None, compare=False)
    blue_score: Optional[int] = field(default=None, compare=False)
    blue_work: Optional[BlueWork] = field(default=None, compare=False)
    daa_score: Optional[int] = field(default=None, compare=False)
    hash_merkle_root: Optional[Hash] = field(default=None, compare=False)
    nonce: Optional[Nonce] = field(default=None, compare=False)
    pruning_point: Optional[Hash] = field(default=None, compare=False)
    timestamp: Optional[int] = field(default=None, compare=False)
    utxo_commitment: Optional[Hash] = field(default=None, compare=False)
    version: Optional[int] = field(default=None, compare=False)


@dataclass(frozen=True)
class BlockParent:
    """Edge from a block to one of its parents."""

    block_hash: Hash
    parent_hash: Hash


@dataclass(frozen=True)
class BlockTransaction:
    """Membership of a transaction in a block."""

    block_hash: Hash
    transaction_id: Hash


@dataclass(unsafe_hash=True)
class ScriptTransaction:
    """Relation between a script public key and a transaction."""

    script_public_key: bytes
    transaction_id: Hash
    block_time: int = field(compare=False)


@dataclass(unsafe_hash=True)
class Subnetwork:
    """A known subnetwork; identity is the subnetwork id string."""

    id: int = field(compare=False)
    subnetwork_id: str


@dataclass(unsafe_hash=True)
class Transaction:
    """A transaction row; identity is the transaction id."""

    transaction_id: Hash
    subnetwork_id: Optional[int] = field(default=None, compare=False)
    hash: Optional[Hash] = field(default=None, compare=False)
    mass: Optional[int] = field(default=None, compare=False)
    payload: Optional[Payload] = field(default=None, compare=False)
    block_time: Optional[int] = field(default=None, compare=False)


@dataclass(frozen=True)
class TransactionAcceptance:
    """Acceptance of a transaction by a chain block (transaction may be absent)."""

    transaction_id: Optional[Hash]
    block_hash: Hash


@dataclass(unsafe_hash=True)
class TransactionInput:
    """A transaction input row; identity is (transaction_id, index)."""

    transaction_id: Hash
    index: int
    previous_outpoint_hash: Optional[Hash] = field(default=None, compare=False)
    previous_outpoint_index: Optional[int] = field(default=None, compare=False)
    signature_script: Optional[bytes] = field(default=None, compare=False)
    sig_op_count: Optional[int] = field(default=None, compare=False)
    block_time: Optional[int] = field(default=None, compare=False)
    previous_outpoint_script: Optional[bytes] = field(default=None, compare=False)
    previous_outpoint_amount: Optional[int] = field(default=None, compare=False)


@dataclass(unsafe_hash=True)
class TransactionOutput:
    """A transaction output row; identity is (transaction_id, index)."""

    transaction_id: Hash
    index: int
    amount: Optional[int] = field(default=None, compare=False)
    script_public_key: Optional[bytes] = field(default=None, compare=False)
    script_public_key_address: Optional[str] = field(default=None, compare=False)
    block_time: Optional[int] = field(default=None, compare=False)


@dataclass
class Var:
    """A key/value pair from the vars table."""

    key: str
    value: str


@dataclass(frozen=True)
class DatabaseDetails:
    """Summary of the database server state."""

    database_name: str
    schema_name: str
    database_size: int
    active_queries: int
    blocked_queries: int
    active_connections: int
    max_connections: int


@dataclass(frozen=True)
class TableDetails:
    """Size and approximate row count of one table."""

    name: str
    total_size: int
    indexes_size: int
    approximate_row_count: int