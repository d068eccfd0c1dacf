"""
Minimal ABI of the DomainRegistrar contract.

Only the functions the client calls are listed.
"""

DEFAULT_CONTRACT_ADDRESS = "0x9995eb19c4afa44d902194609ae448cd30f54585"


def _fn(name, inputs, outputs=(), mutability="nonpayable"):
    return {
        "type": "function",
        "name": name,
        "inputs": [{"internalType": t, "name": n, "type": t} for n, t in inputs],
        "outputs": [{"internalType": t, "name": n, "type": t} for n, t in outputs],
        "stateMutability": mutability,
    }


DOMAIN_REGISTRAR_ABI = [
    # Transitions
    _fn("startCommitPhase", [("domain", "string")]),
    _fn(
        "commitBid",
        [("domain", "string"), ("amount", "uint256"), ("secret", "string")],
        mutability="payable",
    ),
    _fn("startRevealPhase", [("domain", "string")]),
    _fn(
        "revealBid",
        [("domain", "string"), ("amount", "uint256"), ("secret", "string")],
    ),
    _fn("finalizeAuction", [("domain", "string")]),
    _fn("withdraw", []),
    # Views
    _fn(
        "getBiddersCountByDomain",
        [("domain", "string")],
        [("", "uint256")],
        mutability="view",
    ),
    _fn(
        "retrieveDomainPhase",
        [("domain", "string")],
        [("", "string")],
        mutability="view",
    ),
    _fn(
        "domainAuctions",
        [("", "string")],
        [("highestBidder", "address"), ("highestBid", "uint256")],
        mutability="view",
    ),
    _fn("getRegisteredDomains", [], [("", "string[]")], mutability="view"),
    _fn(
        "resolveDomainToAddress",
        [("domain", "string")],
        [("", "address")],
        mutability="view",
    ),
    _fn(
        "resolveAddressToDomains",
        [("owner", "address")],
        [("", "string[]")],
        mutability="view",
    ),
]
