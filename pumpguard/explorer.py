"""Block-explorer links used as signal proof."""

_EXPLORERS = {
    "sol": "https://solscan.io",
    "eth": "https://etherscan.io",
    "bnb": "https://bscscan.com",
}


def explorer_address(chain: str, address: str) -> str:
    base = _EXPLORERS.get(chain, _EXPLORERS["bnb"])
    if chain == "sol":
        return f"{base}/account/{address}"
    return f"{base}/address/{address}"


def explorer_token(chain: str, token: str) -> str:
    base = _EXPLORERS.get(chain, _EXPLORERS["bnb"])
    return f"{base}/token/{token}"


def explorer_tx(signature: str) -> str:
    return f"{_EXPLORERS['sol']}/tx/{signature}"
