"""Shared fixtures for relayer smoke test unit tests.

No RPC or guardian API access needed: contracts and receipts are in-memory fakes.
"""

import json
from pathlib import Path

import pytest
from eth_abi import encode
from hexbytes import HexBytes

from xchain_relay.chain import ChainInfo
from xchain_relay.sequence import LOG_MESSAGE_PUBLISHED_TOPIC

#: Wormhole core contract on the source chain in tests
CORE_ADDRESS = "0x" + "c0" * 20

#: Source chain mock integration, the message emitter
SOURCE_MOCK_ADDRESS = "0x" + "a1" * 20


def build_message_log(sequence: int, address: str = CORE_ADDRESS, sender: str = SOURCE_MOCK_ADDRESS, log_index: int = 0, payload: bytes = b"Hello World") -> dict:
    """Build a raw ``LogMessagePublished`` receipt log."""
    sender_topic = HexBytes(bytes(12) + HexBytes(sender))
    data = encode(["uint64", "uint32", "bytes", "uint8"], [sequence, 0, payload, 200])
    return {
        "address": address,
        "topics": [LOG_MESSAGE_PUBLISHED_TOPIC, sender_topic],
        "data": HexBytes(data),
        "logIndex": log_index,
    }


def build_chain(chain_id: int) -> ChainInfo:
    """A chain with unique, valid contract addresses derived from its id."""
    b = f"{chain_id:02x}"
    return ChainInfo(
        chain_id=chain_id,
        description=f"Test chain {chain_id}",
        rpc=f"http://localhost:{8540 + chain_id}",
        wormhole_address=CORE_ADDRESS,
        core_relayer_address="0x" + "e1" + b * 19,
        relay_provider_address="0x" + "e2" + b * 19,
        mock_integration_address="0x" + "e3" + b * 19,
    )


@pytest.fixture()
def chains() -> list[ChainInfo]:
    return [build_chain(2), build_chain(4), build_chain(6)]


@pytest.fixture()
def config_dir(tmp_path: Path) -> Path:
    """Config directory with three chains, chain 6 missing its relay provider."""
    chain_data = {
        "chains": [
            {"description": "Ethereum", "chainId": 2, "rpc": "http://localhost:8545", "wormholeAddress": CORE_ADDRESS},
            {"description": "BNB", "chainId": 4, "rpc": "http://localhost:8546", "wormholeAddress": CORE_ADDRESS},
            {"description": "Avalanche", "chainId": 6, "rpc": "http://localhost:8547", "wormholeAddress": CORE_ADDRESS},
        ]
    }
    contract_data = {
        "coreRelayers": [{"chainId": c, "address": "0x" + f"{c:02x}" * 20} for c in (2, 4, 6)],
        "relayProviders": [{"chainId": c, "address": "0x" + f"{c + 0x10:02x}" * 20} for c in (2, 4)],
        "mockIntegrations": [{"chainId": c, "address": "0x" + f"{c + 0x20:02x}" * 20} for c in (2, 4, 6)],
    }
    (tmp_path / "chains.json").write_text(json.dumps(chain_data))
    (tmp_path / "contracts.json").write_text(json.dumps(contract_data))
    return tmp_path


@pytest.fixture()
def message_log():
    """Factory for raw ``LogMessagePublished`` logs, see :py:func:`build_message_log`."""
    return build_message_log


@pytest.fixture()
def core_address() -> str:
    return CORE_ADDRESS


@pytest.fixture()
def emitter_address() -> str:
    return SOURCE_MOCK_ADDRESS
