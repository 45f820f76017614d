"""CBOR snapshots of a KeyedStore.

The store is encoded as an array of ``[key, value]`` pairs. Tuple keys become
arrays and record dataclasses are wrapped in the private CBOR tag RECORD_TAG
as ``[type_name, {field: value}]``. Encoding is canonical, so two stores with
the same contents produce the same bytes.
"""

from __future__ import annotations

import dataclasses
import logging
from pathlib import Path
from typing import Any

import cbor2

from .errors import InvalidInput
from .FeedRegistry import PriceFeed
from .KeyedStore import KeyedStore
from .NetworkConfig import NetworkConfig
from .OracleNetwork import NetworkEvent
from .PriceStore import PriceHistoryEntry, ResolvedPrice
from .ProviderRegistry import OracleProvider
from .RoundManager import PriceRound
from .SubmissionLedger import PriceSubmission

logger = logging.getLogger(__name__)

# First-come-first-served range tag ("ORAC").
RECORD_TAG = 0x4F524143

RECORD_TYPES: dict[str, type] = {
    cls.__name__: cls
    for cls in (
        NetworkConfig,
        OracleProvider,
        PriceFeed,
        PriceRound,
        PriceSubmission,
        ResolvedPrice,
        PriceHistoryEntry,
        NetworkEvent,
    )
}


def _encode_record(encoder: cbor2.CBOREncoder, value: Any) -> None:
    name = type(value).__name__
    if not dataclasses.is_dataclass(value) or name not in RECORD_TYPES:
        raise cbor2.CBOREncodeTypeError(f"Cannot encode {type(value)!r}")
    fields = {f.name: getattr(value, f.name) for f in dataclasses.fields(value)}
    encoder.encode(cbor2.CBORTag(RECORD_TAG, [name, fields]))


def _decode_record(decoder: cbor2.CBORDecoder, tag: cbor2.CBORTag) -> Any:
    if tag.tag != RECORD_TAG:
        return tag
    try:
        name, fields = tag.value
        return RECORD_TYPES[name](**fields)
    except (KeyError, TypeError, ValueError) as e:
        raise cbor2.CBORDecodeValueError(f"Invalid record {tag.value!r}") from e


def dumps(store: KeyedStore) -> bytes:
    """Encode the store contents as canonical CBOR."""
    pairs = [[list(key), value] for key, value in sorted(store.items(), key=lambda kv: repr(kv[0]))]
    return cbor2.dumps(pairs, default=_encode_record, canonical=True)


def loads(data: bytes) -> KeyedStore:
    """Decode a store snapshot produced by :func:`dumps`.

    :raises InvalidInput: If ``data`` is not a valid snapshot.
    """
    try:
        pairs = cbor2.loads(data, tag_hook=_decode_record)
        return KeyedStore({tuple(key): value for key, value in pairs})
    except (cbor2.CBORDecodeError, TypeError, ValueError) as e:
        raise InvalidInput(f"Corrupt state snapshot: {e}") from e


def save(store: KeyedStore, path: str | Path) -> None:
    """Write a store snapshot to ``path``."""
    data = dumps(store)
    Path(path).write_bytes(data)
    logger.debug(f"Saved {len(store)} records ({len(data)} bytes) to {path}")


def load(path: str | Path) -> KeyedStore:
    """Read a store snapshot from ``path``; a missing file yields an empty store.

    :raises InvalidInput: If the file is not a valid snapshot.
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No state file at {path}, starting empty")
        return KeyedStore()
    return loads(path.read_bytes())
