"""
Subject validation: which chain, and is the address well formed for it.
"""

import re

import base58
from solders.pubkey import Pubkey

from .errors import InvalidSubjectError

SUPPORTED_CHAINS = ("sol", "eth", "bnb")
EVM_CHAINS = ("eth", "bnb")

_EVM_ADDRESS = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_solana_address(address: str) -> bool:
    """True when the string decodes as base58 to a 32-byte public key."""
    try:
        raw = base58.b58decode(address)
    except ValueError:
        return False
    if len(raw) != 32:
        return False
    try:
        Pubkey.from_string(address)
    except ValueError:
        return False
    return True


def is_evm_address(address: str) -> bool:
    return bool(_EVM_ADDRESS.match(address))


def validate_subject(chain: str, address: str) -> tuple:
    """
    Normalize and check (chain, address).

    Raises InvalidSubjectError for an unknown chain or an address that does
    not fit the chain's format.
    """
    chain = (chain or "").strip().lower()
    address = (address or "").strip()

    if chain not in SUPPORTED_CHAINS:
        raise InvalidSubjectError(f"unsupported chain: {chain or '<empty>'}")
    if not address:
        raise InvalidSubjectError("missing address")

    if chain == "sol":
        if not is_solana_address(address):
            raise InvalidSubjectError(f"not a Solana address: {address}")
    elif not is_evm_address(address):
        raise InvalidSubjectError(f"not an EVM address: {address}")

    return chain, address
