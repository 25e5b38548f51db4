"""
Entry point for running the relayer as a module.

Usage:
    python -m faucet_relayer
"""

from faucet_relayer.cli import main

if __name__ == "__main__":
    main()
