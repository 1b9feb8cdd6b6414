"""
Main entry point for running slipnet as a module.

Usage:
    python -m slipnet profile list
    python -m slipnet profile add Home --type dnstt --public-key ab12
    python -m slipnet stats show
"""

from .cli import cli

if __name__ == "__main__":
    cli()
