"""Chain id lookup tables for presentation."""
from __future__ import annotations

from typing import Dict

DEFAULT_EXPLORER = "https://etherscan.io"

NETWORK_NAMES: Dict[int, str] = {
    1: "Ethereum Mainnet",
    11155111: "Sepolia Testnet",
    137: "Polygon",
    56: "BSC",
    97: "BSC Testnet",
    10: "Optimism",
    8453: "Base",
    84532: "Base Sepolia",
    43114: "Avalanche C-Chain",
    250: "Fantom",
}

BLOCK_EXPLORERS: Dict[int, str] = {
    1: "https://etherscan.io",
    11155111: "https://sepolia.etherscan.io",
    137: "https://polygonscan.com",
    56: "https://bscscan.com",
    97: "https://testnet.bscscan.com",
    42161: "https://arbiscan.io",
    59144: "https://lineascan.build",
    10: "https://optimistic.etherscan.io",
    196: "https://www.oklink.com/x-layer",
    8453: "https://basescan.org",
    84532: "https://sepolia.basescan.org",
    43114: "https://snowtrace.io",
    146: "https://sonicscan.org",
    80094: "https://berascan.com",
    130: "https://uniscan.xyz",
    250: "https://ftmscan.com",
}


def network_name(chain_id: int) -> str:
    return NETWORK_NAMES.get(chain_id, f"Chain ID {chain_id}")


def explorer_url(chain_id: int) -> str:
    return BLOCK_EXPLORERS.get(chain_id, DEFAULT_EXPLORER)


def explorer_tx_url(chain_id: int, tx_hash: str) -> str:
    return f"{explorer_url(chain_id)}/tx/{tx_hash}"
