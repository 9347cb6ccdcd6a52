"""Cross-chain relayer smoke testing.

Send a message from one chain to another through the core relayer contract,
then optionally poll the guardian API for the signed VAA of every message
the send emitted.

See :py:mod:`xchain_relay.cli` for the command line entry point.
"""
