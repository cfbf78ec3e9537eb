"""Supported chains and their address rules.

Solana addresses are Base58 and case-sensitive; they are stored and compared
exactly as given. EVM addresses are case-insensitive and are lowercased before
storage or comparison.
"""

import re
import uuid
from enum import Enum
from typing import Optional, Union


class Chain(str, Enum):
    ETHEREUM = "ethereum"
    BASE = "base"
    BSC = "bsc"
    SOLANA = "solana"


class ChainFamily(str, Enum):
    EVM = "evm"
    SOLANA = "solana"


EVM_ADDRESS_RE = re.compile(r'^0x[a-fA-F0-9]{40}$')
SOLANA_ADDRESS_RE = re.compile(r'^[1-9A-HJ-NP-Za-km-z]{32,44}$')

# Namespace for consigner entity ids, so the same wallet always maps to the same id
ENTITY_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_DNS, 'entities.otc-desk')


def chain_family(chain: Union[Chain, str]) -> ChainFamily:
    """Return the ledger family a chain belongs to."""
    return ChainFamily.SOLANA if Chain(chain) is Chain.SOLANA else ChainFamily.EVM


def is_case_sensitive(chain: Union[Chain, str]) -> bool:
    return chain_family(chain) is ChainFamily.SOLANA


def is_valid_address(address: str, chain: Union[Chain, str]) -> bool:
    """Check an address has the format of the chain's family."""
    if chain_family(chain) is ChainFamily.SOLANA:
        return bool(SOLANA_ADDRESS_RE.match(address))
    return bool(EVM_ADDRESS_RE.match(address))


def detect_family(address: str) -> Optional[ChainFamily]:
    """Guess the ledger family from an address' format."""
    address = address.strip()
    if EVM_ADDRESS_RE.match(address):
        return ChainFamily.EVM
    if SOLANA_ADDRESS_RE.match(address):
        return ChainFamily.SOLANA
    return None


def normalize_address(address: str, chain: Optional[Union[Chain, str]] = None) -> str:
    """Normalize an address with its chain's case rule.

    Without a chain the family is inferred from the address format; anything
    that is not recognizably Solana is treated as case-insensitive.
    """
    address = address.strip()
    if chain is not None:
        case_sensitive = is_case_sensitive(chain)
    else:
        case_sensitive = detect_family(address) is ChainFamily.SOLANA
    return address if case_sensitive else address.lower()


def addresses_equal(a: Optional[str], b: Optional[str], chain: Union[Chain, str]) -> bool:
    if not a or not b:
        return False
    return normalize_address(a, chain) == normalize_address(b, chain)


def wallet_to_entity_id(address: str, chain: Optional[Union[Chain, str]] = None) -> str:
    """Derive the stable entity id of a wallet."""
    return str(uuid.uuid5(ENTITY_NAMESPACE, normalize_address(address, chain)))
