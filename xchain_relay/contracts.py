"""Web3 connections and contract handles for the chains under test."""

import logging

from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.contract import Contract
from web3.middleware import SignAndSendRawMiddlewareBuilder

from xchain_relay.abi import get_deployed_contract
from xchain_relay.chain import ChainInfo
from xchain_relay.utils import get_url_domain

logger = logging.getLogger(__name__)


def create_signing_web3(chain: ChainInfo, private_key: str) -> Web3:
    """Connect to a chain RPC and sign outgoing transactions locally.

    The account becomes ``web3.eth.default_account`` so contract
    ``transact()`` calls do not need an explicit ``from``.
    """
    account: LocalAccount = Account.from_key(private_key)
    web3 = Web3(Web3.HTTPProvider(chain.rpc))
    web3.middleware_onion.inject(SignAndSendRawMiddlewareBuilder.build(account), layer=0)
    web3.eth.default_account = account.address
    logger.info("Connected to chain %d at %s as %s", chain.chain_id, get_url_domain(chain.rpc), account.address)
    return web3


def get_core_relayer(web3: Web3, chain: ChainInfo) -> Contract:
    return get_deployed_contract(web3, "CoreRelayer.json", chain.require_address("core_relayer_address"))


def get_mock_integration(web3: Web3, chain: ChainInfo) -> Contract:
    return get_deployed_contract(web3, "MockRelayerIntegration.json", chain.require_address("mock_integration_address"))
