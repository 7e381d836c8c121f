from web3 import Web3

# --- Configuration ---

# Minimal event ABI for TokenVesting so we never need to fetch the full artifact
VESTING_EVENTS_ABI = [
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "beneficiary", "type": "address"},
            {"indexed": False, "name": "amount", "type": "uint256"},
            {"indexed": False, "name": "start", "type": "uint256"},
            {"indexed": False, "name": "cliff", "type": "uint256"},
            {"indexed": False, "name": "duration", "type": "uint256"},
        ],
        "name": "VestingScheduleCreated",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "beneficiary", "type": "address"},
            {"indexed": False, "name": "amount", "type": "uint256"},
        ],
        "name": "TokensReleased",
        "type": "event",
    },
    {
        "anonymous": False,
        "inputs": [
            {"indexed": True, "name": "beneficiary", "type": "address"},
            {"indexed": False, "name": "refunded", "type": "uint256"},
        ],
        "name": "VestingRevoked",
        "type": "event",
    },
]


def event_signature(event_abi):
    """'TokensReleased' -> 'TokensReleased(address,uint256)'"""
    types = ",".join(i["type"] for i in event_abi["inputs"])
    return f"{event_abi['name']}({types})"


def event_topic(event_abi) -> bytes:
    return bytes(Web3.keccak(text=event_signature(event_abi)))


def split_inputs(event_abi):
    """Returns (indexed types, non-indexed types) in declaration order."""
    indexed = [i["type"] for i in event_abi["inputs"] if i["indexed"]]
    unindexed = [i["type"] for i in event_abi["inputs"] if not i["indexed"]]
    return indexed, unindexed


EVENTS_BY_NAME = {e["name"]: e for e in VESTING_EVENTS_ABI}
EVENTS_BY_TOPIC = {event_topic(e): e for e in VESTING_EVENTS_ABI}
