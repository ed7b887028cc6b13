from enum import Enum

from web3 import Web3

SHARE_PRICE_DECIMALS = 18
SHARE_PRICE_SCALE = 10**SHARE_PRICE_DECIMALS


class SnapshotSource(str, Enum):
    DEPOSIT = "Deposit"
    WITHDRAW = "Withdraw"
    REBALANCE = "Rebalance"  # owner-initiated relever
    REBALANCED = "Rebalanced"  # permissionless external rebalancer
    BLOCK = "Block"  # periodic sweep


def event_topic(signature: str) -> str:
    return Web3.to_hex(Web3.keccak(text=signature))


VAULT_CREATED_EVENT_TOPIC = event_topic("VaultCreated(address,address)")
DEPOSIT_EVENT_TOPIC = event_topic("Deposit(address,uint256,uint256)")
WITHDRAW_EVENT_TOPIC = event_topic("Withdraw(address,uint256,uint256,uint256)")
REBALANCE_EVENT_TOPIC = event_topic("Rebalance()")
REBALANCED_EVENT_TOPIC = event_topic("Rebalanced()")

VAULT_FACTORY_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "user", "type": "address"},
            {"indexed": True, "internalType": "address", "name": "vault", "type": "address"},
        ],
        "name": "VaultCreated",
        "type": "event",
    }
]

QUOTE_ONLY_VAULT_ABI = [
    {
        "inputs": [],
        "name": "totalAssets",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [],
        "name": "totalSupply",
        "outputs": [{"internalType": "uint256", "name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "user", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "quoteAmount", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "sharesMinted", "type": "uint256"},
        ],
        "name": "Deposit",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "internalType": "address", "name": "user", "type": "address"},
            {"indexed": False, "internalType": "uint256", "name": "quoteReturned", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "baseReturned", "type": "uint256"},
            {"indexed": False, "internalType": "uint256", "name": "sharesBurned", "type": "uint256"},
        ],
        "name": "Withdraw",
        "type": "event",
    },
    {"anonymous": False, "inputs": [], "name": "Rebalance", "type": "event"},
    {"anonymous": False, "inputs": [], "name": "Rebalanced", "type": "event"},
]
