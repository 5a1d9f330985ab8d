"""Chain definitions for supported EVM networks."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class Chain:
    """An EVM-compatible blockchain network."""

    name: str
    chain_id: int
    rpc_url: str
    native_symbol: str
    explorer_url: str
    decimals: int = 18

    def to_native(self, amount: int) -> Decimal:
        """Convert an integer smallest-unit amount (e.g. wei) to native units.

        The conversion is exact: the result is a ``Decimal`` scaled by
        ``decimals`` with no float rounding.
        """
        if isinstance(amount, bool) or not isinstance(amount, int):
            raise TypeError(f"Expected an integer amount, got {type(amount).__name__}")
        if amount < 0:
            raise ValueError(f"Negative balance reported: {amount}")
        return Decimal(amount).scaleb(-self.decimals)

    def to_smallest(self, amount: Decimal | str) -> int:
        """Convert a native-unit amount to the integer smallest unit.

        Raises ``ValueError`` if *amount* carries more precision than the
        chain can represent.
        """
        value = Decimal(str(amount)).scaleb(self.decimals)
        if value != value.to_integral_value():
            raise ValueError(
                f"{amount} {self.native_symbol} exceeds {self.decimals}-decimal precision"
            )
        return int(value)

    def tx_url(self, tx_hash: str) -> str:
        return f"{self.explorer_url}/tx/{tx_hash}"

    def address_url(self, address: str) -> str:
        return f"{self.explorer_url}/address/{address}"


CHAINS: dict[str, Chain] = {
    "ethereum": Chain(
        name="ethereum",
        chain_id=1,
        rpc_url="https://eth.llamarpc.com",
        native_symbol="ETH",
        explorer_url="https://etherscan.io",
    ),
    "base": Chain(
        name="base",
        chain_id=8453,
        rpc_url="https://mainnet.base.org",
        native_symbol="ETH",
        explorer_url="https://basescan.org",
    ),
    "arbitrum": Chain(
        name="arbitrum",
        chain_id=42161,
        rpc_url="https://arb1.arbitrum.io/rpc",
        native_symbol="ETH",
        explorer_url="https://arbiscan.io",
    ),
    "polygon": Chain(
        name="polygon",
        chain_id=137,
        rpc_url="https://polygon-rpc.com",
        native_symbol="POL",
        explorer_url="https://polygonscan.com",
    ),
    "sepolia": Chain(
        name="sepolia",
        chain_id=11155111,
        rpc_url="https://rpc.sepolia.org",
        native_symbol="ETH",
        explorer_url="https://sepolia.etherscan.io",
    ),
    "base-sepolia": Chain(
        name="base-sepolia",
        chain_id=84532,
        rpc_url="https://sepolia.base.org",
        native_symbol="ETH",
        explorer_url="https://sepolia.basescan.org",
    ),
}


def get_chain(name: str) -> Chain:
    """Get a chain by name. Raises ``KeyError`` if not found."""
    if name not in CHAINS:
        raise KeyError(
            f"Unknown chain '{name}'. Available: {list_chain_names()}"
        )
    return CHAINS[name]


def list_chain_names() -> list[str]:
    """Return the names of all supported chains."""
    return list(CHAINS.keys())
