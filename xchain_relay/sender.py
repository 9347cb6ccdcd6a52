"""Send a test message through the core relayer.

The source chain ``MockRelayerIntegration.sendMessage()`` publishes the
payload through Wormhole and pays the source ``CoreRelayer`` to deliver it
to the target chain mock integration. The relay fee is quoted on-chain and
padded with :py:data:`FEE_SAFETY_MARGIN`, as quotes may be stale or
underestimate delivery cost.
"""

import logging
from dataclasses import dataclass, field
from functools import partial
from typing import Callable

import requests
from web3 import Web3

from xchain_relay.attestation import AttestationResult, poll_signed_vaa
from xchain_relay.chain import ChainInfo
from xchain_relay.config import DEFAULT_WORMHOLE_RPC_HOST
from xchain_relay.contracts import get_core_relayer, get_mock_integration
from xchain_relay.sequence import parse_message_logs, parse_sequences_from_receipt

logger = logging.getLogger(__name__)

#: Gas the relayer is asked to quote for on the target chain
DELIVERY_GAS_LIMIT = 2_000_000

#: Added on top of the quoted delivery fee, in native currency wei
FEE_SAFETY_MARGIN = 10_000_000_000

#: Gas limit of the source chain ``sendMessage()`` transaction
SEND_GAS_LIMIT = 1_000_000

#: Message sent in every test
TEST_PAYLOAD = b"Hello World"

#: ``(raw log, chain id) -> result``
AttestationPoller = Callable[[object, int], AttestationResult]


class MessageSendFailed(Exception):
    """The ``sendMessage()`` transaction was mined but reverted."""


@dataclass(slots=True)
class SendResult:
    """What happened when we sent one test message."""

    #: ``sendMessage()`` transaction hash, 0x-prefixed
    tx_hash: str

    #: Wormhole chain id we sent from
    source_chain_id: int

    #: Wormhole chain id we sent to
    target_chain_id: int

    #: Native currency attached to the transaction, quote + margin
    value: int

    #: All receipt logs in order
    logs: list

    #: Wormhole message sequences published by the transaction
    sequences: list[int]

    #: One entry per published message when VAA fetching was asked, otherwise empty
    attestations: list[AttestationResult] = field(default_factory=list)


def compute_relay_value(quote: int, margin: int = FEE_SAFETY_MARGIN) -> int:
    """Transaction value paying for relay delivery.

    :param quote:
        Delivery fee from ``quoteGasDeliveryFee()``.
    """
    assert type(quote) == int, f"Got quote {quote!r}"
    assert quote >= 0, f"Negative delivery quote {quote}"
    return quote + margin


def log_relayer_registration(relayer, source: ChainInfo) -> str:
    """Log the relayer self-registration and default provider next to the configured values.

    Purely diagnostic, but contract call errors propagate.

    :return:
        The default relay provider address.
    """
    registered = relayer.functions.registeredCoreRelayerContract(source.chain_id).call()
    logger.info(
        "Chain %d relayer registered for itself: %s, configured relayer: %s",
        source.chain_id,
        Web3.to_hex(registered),
        source.core_relayer_address,
    )

    default_provider = relayer.functions.getDefaultRelayProvider().call()
    logger.info(
        "Chain %d default relay provider: %s, configured provider: %s",
        source.chain_id,
        default_provider,
        source.relay_provider_address,
    )
    return default_provider


def quote_relay_value(relayer, target_chain_id: int, relay_provider: str, gas_limit: int = DELIVERY_GAS_LIMIT) -> int:
    """Ask the relayer what delivery costs and add the safety margin."""
    quote = relayer.functions.quoteGasDeliveryFee(target_chain_id, gas_limit, relay_provider).call()
    value = compute_relay_value(quote)
    logger.info("Relay quote to chain %d for %d gas: %d, sending %d", target_chain_id, gas_limit, quote, value)
    return value


def send_message(
    web3: Web3,
    source: ChainInfo,
    target: ChainInfo,
    fetch_signed_vaa: bool = False,
    poller: AttestationPoller | None = None,
    api_url: str = DEFAULT_WORMHOLE_RPC_HOST,
    session: requests.Session | None = None,
) -> SendResult:
    """Send the test payload from one chain to another.

    :param web3:
        Signing connection to the source chain,
        see :py:func:`xchain_relay.contracts.create_signing_web3`.

    :param fetch_signed_vaa:
        Poll the guardian API for the VAA of every published message.

    :param poller:
        VAA poll function. Defaults to :py:func:`xchain_relay.attestation.poll_signed_vaa`.

    :param session:
        Guardian API HTTP session for the default poll function.

    :raise MessageSendFailed:
        If the transaction reverted.
    """
    logger.info("Sending message from chain %d to %d...", source.chain_id, target.chain_id)

    relayer = get_core_relayer(web3, source)
    default_provider = log_relayer_registration(relayer, source)
    value = quote_relay_value(relayer, target.chain_id, default_provider)

    mock_integration = get_mock_integration(web3, source)
    target_address = Web3.to_checksum_address(target.require_address("mock_integration_address"))

    tx_hash = mock_integration.functions.sendMessage(
        TEST_PAYLOAD,
        target.chain_id,
        target_address,
        target_address,
    ).transact(
        {
            "gas": SEND_GAS_LIMIT,
            "value": value,
        }
    )
    receipt = web3.eth.wait_for_transaction_receipt(tx_hash)
    tx_hash = Web3.to_hex(receipt["transactionHash"])

    if receipt["status"] != 1:
        raise MessageSendFailed(f"sendMessage() from chain {source.chain_id} to {target.chain_id} reverted: {tx_hash}")

    sequences = parse_sequences_from_receipt(receipt, source.wormhole_address)
    logger.info("Tx hash: %s", tx_hash)
    logger.info("Sequences: %s", sequences)

    result = SendResult(
        tx_hash=tx_hash,
        source_chain_id=source.chain_id,
        target_chain_id=target.chain_id,
        value=value,
        logs=list(receipt["logs"]),
        sequences=sequences,
    )

    if fetch_signed_vaa:
        if poller is None:
            poller = partial(poll_signed_vaa, api_url=api_url, session=session)

        for raw_log, event in parse_message_logs(receipt["logs"], source.wormhole_address):
            attestation = poller(raw_log, source.chain_id)
            if attestation.is_attested:
                logger.info("Signed VAA for sequence %d: %s", event.sequence, attestation.vaa.hex())
            else:
                logger.warning("No signed VAA for sequence %d: %s", event.sequence, attestation)
            result.attestations.append(attestation)

    return result
