"""Extract Wormhole message sequence numbers from transaction receipts.

Every message published through the Wormhole core contract emits::

    event LogMessagePublished(
        address indexed sender,
        uint64 sequence,
        uint32 nonce,
        bytes payload,
        uint8 consistencyLevel
    )

The ``(emitter chain, sender, sequence)`` triplet is the lookup key
for the signed VAA, see :py:mod:`xchain_relay.attestation`.
"""

import logging
from dataclasses import dataclass
from typing import Iterable

from eth_abi import decode
from eth_typing import HexAddress
from eth_utils import keccak, to_checksum_address
from hexbytes import HexBytes

from xchain_relay.abi import get_abi_by_filename

logger = logging.getLogger(__name__)


def get_event_abi(fname: str, name: str) -> dict:
    """Find an event entry in a packaged ABI file.

    :raise ValueError:
        If the file has no such event.
    """
    for entry in get_abi_by_filename(fname):
        if entry.get("type") == "event" and entry.get("name") == name:
            return entry
    raise ValueError(f"No event {name} in {fname}")


def get_event_signature(event_abi: dict) -> str:
    """Canonical signature, e.g. ``Transfer(address,address,uint256)``."""
    types = ",".join(i["type"] for i in event_abi["inputs"])
    return f"{event_abi['name']}({types})"


#: ``LogMessagePublished`` entry of the Wormhole core ABI
LOG_MESSAGE_PUBLISHED_ABI = get_event_abi("Implementation.json", "LogMessagePublished")

#: keccak256 of the ``LogMessagePublished`` event signature
LOG_MESSAGE_PUBLISHED_TOPIC = HexBytes(keccak(text=get_event_signature(LOG_MESSAGE_PUBLISHED_ABI)))

#: Non-indexed ``LogMessagePublished`` arguments, in data order
_DATA_TYPES = [i["type"] for i in LOG_MESSAGE_PUBLISHED_ABI["inputs"] if not i["indexed"]]


@dataclass(slots=True, frozen=True)
class LogMessagePublished:
    """Decoded Wormhole core ``LogMessagePublished`` event."""

    #: Contract that published the message, checksummed
    sender: HexAddress

    #: Per-emitter monotonically increasing message number
    sequence: int

    #: Batch nonce given by the sender
    nonce: int

    #: Raw message payload
    payload: bytes

    #: Finality the guardians wait for before signing
    consistency_level: int

    #: Position of the log in the block, if known
    log_index: int | None = None


def is_log_message_published(log, core_address: str | None = None) -> bool:
    """Check whether a raw receipt log is a core ``LogMessagePublished`` event.

    :param core_address:
        When given, the log must also be emitted by this contract.
    """
    topics = log["topics"]
    if not topics or HexBytes(topics[0]) != LOG_MESSAGE_PUBLISHED_TOPIC:
        return False
    if core_address is not None and log["address"].lower() != core_address.lower():
        return False
    return True


def decode_log_message_published(log) -> LogMessagePublished:
    """Decode one raw receipt log.

    :raise ValueError:
        If the log is not a ``LogMessagePublished`` event.
    """
    if not is_log_message_published(log):
        raise ValueError(f"Not a LogMessagePublished log: {dict(log)}")

    topics = log["topics"]
    if len(topics) != 2:
        raise ValueError(f"LogMessagePublished must have 2 topics, got {len(topics)}")

    sender_topic = HexBytes(topics[1])
    sequence, nonce, payload, consistency_level = decode(_DATA_TYPES, HexBytes(log["data"]))

    return LogMessagePublished(
        sender=to_checksum_address(sender_topic[-20:]),
        sequence=sequence,
        nonce=nonce,
        payload=payload,
        consistency_level=consistency_level,
        log_index=log.get("logIndex"),
    )


def parse_message_logs(logs: Iterable, core_address: str) -> list[tuple[object, LogMessagePublished]]:
    """Pick core contract message events out of receipt logs.

    :return:
        ``(raw log, decoded event)`` pairs in log order.
    """
    result = []
    for log in logs:
        if is_log_message_published(log, core_address):
            result.append((log, decode_log_message_published(log)))
    return result


def parse_sequences_from_receipt(receipt, core_address: str) -> list[int]:
    """Get sequence numbers of all messages published in a transaction.

    :param receipt:
        Transaction receipt as returned by ``web3.eth.wait_for_transaction_receipt()``.

    :param core_address:
        Wormhole core contract address on the source chain.

    :return:
        Sequence numbers in log order.
    """
    messages = parse_message_logs(receipt["logs"], core_address)
    sequences = [event.sequence for _, event in messages]
    logger.debug("Receipt %s has %d message logs from %s: %s", receipt.get("transactionHash"), len(sequences), core_address, sequences)
    return sequences
