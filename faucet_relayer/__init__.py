"""
Faucet Relayer - testnet faucet backed by a single relay wallet.

Provides:
- POST /claim: eligibility checks, then a signed transfer from the relay wallet
- GET /health: relay wallet balance for monitoring
- CLI helpers to create and fund the relay wallet

Usage:
    # Create a relay wallet and wait for it to be funded
    faucet-relayer new-wallet --rpc-url https://rpc.testnet.example
    faucet-relayer wait-for-funds

    # Serve the faucet
    CLAIM_POLICY=top_up faucet-relayer serve
"""

__version__ = "0.1.0"
