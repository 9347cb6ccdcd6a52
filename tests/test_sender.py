"""Sending the test message against in-memory fake contracts."""

import base64

import pytest
from hexbytes import HexBytes
from web3 import Web3

from xchain_relay import sender
from xchain_relay.attestation import AttestationResult, AttestationStatus, encode_emitter_address
from xchain_relay.sender import (
    DELIVERY_GAS_LIMIT,
    FEE_SAFETY_MARGIN,
    SEND_GAS_LIMIT,
    TEST_PAYLOAD,
    MessageSendFailed,
    compute_relay_value,
    send_message,
)

TX_HASH = HexBytes("0x" + "ab" * 32)


class FakeCall:
    def __init__(self, value):
        self.value = value

    def call(self):
        return self.value


class FakeTransact:
    def __init__(self, contract, args):
        self.contract = contract
        self.args = args

    def transact(self, tx_params):
        self.contract.sent.append((self.args, tx_params))
        return TX_HASH


class FakeRelayerFunctions:
    def __init__(self, contract):
        self.contract = contract

    def registeredCoreRelayerContract(self, chain_id):
        return FakeCall(HexBytes(bytes(12) + HexBytes(self.contract.address)))

    def getDefaultRelayProvider(self):
        return FakeCall(self.contract.provider)

    def quoteGasDeliveryFee(self, target_chain_id, gas_limit, provider):
        self.contract.quote_requests.append((target_chain_id, gas_limit, provider))
        return FakeCall(self.contract.quote)


class FakeMockIntegrationFunctions:
    def __init__(self, contract):
        self.contract = contract

    def sendMessage(self, *args):
        return FakeTransact(self.contract, args)


class FakeContract:
    def __init__(self, address, kind, quote=0, provider=None):
        self.address = address
        self.quote = quote
        self.provider = provider
        self.quote_requests = []
        self.sent = []
        self.functions = FakeRelayerFunctions(self) if kind == "relayer" else FakeMockIntegrationFunctions(self)


class FakeEth:
    def __init__(self, contracts: dict, receipt: dict):
        self.contracts = contracts
        self.receipt = receipt
        self.waited = []

    def contract(self, address, abi):
        return self.contracts[address.lower()]

    def wait_for_transaction_receipt(self, tx_hash):
        self.waited.append(tx_hash)
        return self.receipt


class FakeWeb3:
    def __init__(self, eth: FakeEth):
        self.eth = eth


@pytest.fixture()
def source(chains):
    return chains[1]


@pytest.fixture()
def target(chains):
    return chains[2]


@pytest.fixture()
def relayer(source):
    return FakeContract(source.core_relayer_address, "relayer", quote=123_456_789, provider=source.relay_provider_address)


@pytest.fixture()
def mock_integration(source):
    return FakeContract(source.mock_integration_address, "mock")


def make_web3(relayer, mock_integration, logs, status=1) -> FakeWeb3:
    receipt = {"transactionHash": TX_HASH, "status": status, "logs": logs}
    contracts = {relayer.address.lower(): relayer, mock_integration.address.lower(): mock_integration}
    return FakeWeb3(FakeEth(contracts, receipt))


@pytest.mark.parametrize("quote", [0, 1, 123_456_789, 10**30])
def test_compute_relay_value(quote):
    assert compute_relay_value(quote) == quote + 10_000_000_000


def test_compute_relay_value_rejects_negative():
    with pytest.raises(AssertionError):
        compute_relay_value(-1)


def test_send_message(source, target, relayer, mock_integration, message_log):
    """Quote is padded, the mock integration is called with the target as destination and refund address."""
    web3 = make_web3(relayer, mock_integration, [message_log(sequence=100, log_index=0), message_log(sequence=101, log_index=1)])

    result = send_message(web3, source, target)

    assert relayer.quote_requests == [(target.chain_id, DELIVERY_GAS_LIMIT, source.relay_provider_address)]

    [(args, tx_params)] = mock_integration.sent
    target_address = Web3.to_checksum_address(target.mock_integration_address)
    assert args == (TEST_PAYLOAD, target.chain_id, target_address, target_address)
    assert tx_params == {"gas": SEND_GAS_LIMIT, "value": 123_456_789 + FEE_SAFETY_MARGIN}

    assert result.tx_hash == "0x" + "ab" * 32
    assert result.source_chain_id == 4
    assert result.target_chain_id == 6
    assert result.value == 123_456_789 + FEE_SAFETY_MARGIN
    assert result.sequences == [100, 101]
    assert len(result.logs) == 2
    assert result.attestations == []
    assert web3.eth.waited == [TX_HASH]


def test_send_message_polls_every_message(source, target, relayer, mock_integration, message_log):
    """One VAA poll per published message, however many there are."""
    logs = [message_log(sequence=s, log_index=i) for i, s in enumerate([7, 8, 9])]
    web3 = make_web3(relayer, mock_integration, logs)
    polled = []

    def poller(log, chain_id):
        polled.append((log["logIndex"], chain_id))
        status = AttestationStatus.attested if log["logIndex"] != 1 else AttestationStatus.not_available
        return AttestationResult(status=status, chain_id=chain_id, attempts=1, vaa=b"vaa" if status == AttestationStatus.attested else None)

    result = send_message(web3, source, target, fetch_signed_vaa=True, poller=poller)

    assert polled == [(0, 4), (1, 4), (2, 4)]
    assert [a.status for a in result.attestations] == [AttestationStatus.attested, AttestationStatus.not_available, AttestationStatus.attested]


def test_send_message_without_fetch_does_not_poll(source, target, relayer, mock_integration, message_log):
    web3 = make_web3(relayer, mock_integration, [message_log(sequence=1)])

    def poller(log, chain_id):
        raise AssertionError("Should not poll")

    result = send_message(web3, source, target, fetch_signed_vaa=False, poller=poller)
    assert result.sequences == [1]


def test_send_message_reverted(source, target, relayer, mock_integration):
    web3 = make_web3(relayer, mock_integration, [], status=0)
    with pytest.raises(MessageSendFailed, match="reverted"):
        send_message(web3, source, target)


def test_send_message_contract_error_propagates(source, target, relayer, mock_integration):
    """Relayer read failures abort the send before any transaction."""

    def broken_provider():
        raise ConnectionError("RPC down")

    relayer.functions.getDefaultRelayProvider = broken_provider
    web3 = make_web3(relayer, mock_integration, [])

    with pytest.raises(ConnectionError):
        send_message(web3, source, target)

    assert mock_integration.sent == []


class VaaSession:
    """Guardian API session that has every VAA ready."""

    def __init__(self):
        self.urls = []

    def get(self, url, timeout=None):
        self.urls.append(url)
        return self

    def raise_for_status(self):
        pass

    def json(self):
        return {"vaaBytes": base64.b64encode(b"signed vaa").decode()}


def test_send_message_polls_through_shared_session(source, target, relayer, mock_integration, message_log, emitter_address):
    """Default poller uses the given guardian API session for every message."""
    web3 = make_web3(relayer, mock_integration, [message_log(sequence=5, log_index=0), message_log(sequence=6, log_index=1)])
    session = VaaSession()

    result = send_message(web3, source, target, fetch_signed_vaa=True, api_url="http://guardian:7071", session=session)

    emitter = encode_emitter_address(emitter_address)
    assert session.urls == [
        f"http://guardian:7071/v1/signed_vaa/4/{emitter}/5",
        f"http://guardian:7071/v1/signed_vaa/4/{emitter}/6",
    ]
    assert [a.vaa for a in result.attestations] == [b"signed vaa", b"signed vaa"]


def test_send_message_sequences_from_receipt(monkeypatch, source, target, relayer, mock_integration, message_log):
    """Sequences are read with the receipt parser against the source core contract."""
    calls = []
    real_parser = sender.parse_sequences_from_receipt

    def spy(receipt, core_address):
        calls.append(core_address)
        return real_parser(receipt, core_address)

    monkeypatch.setattr(sender, "parse_sequences_from_receipt", spy)
    web3 = make_web3(relayer, mock_integration, [message_log(sequence=12)])

    result = send_message(web3, source, target)

    assert calls == [source.wormhole_address]
    assert result.sequences == [12]
