"""
Reward catalog configuration.

Maps store product IDs to the token reward minted for a purchase.
Product IDs must match those configured in App Store Connect and the
Google Play Console.
"""

import json
from collections.abc import Iterator, Mapping
from pathlib import Path
from types import MappingProxyType

from structlog import get_logger

from app.models.domain import Reward

logger = get_logger(__name__)

# Built-in catalog used when no catalog file is configured
DEFAULT_REWARDS: Mapping[str, Reward] = MappingProxyType(
    {
        "100_tokens": Reward(
            contract_address="0x33D1a021aFbE0CFB0AC7CcB7c5A247777b3e7c50",
            amount="100",
        ),
    }
)


class RewardCatalog:
    """Immutable product ID to reward mapping."""

    def __init__(self, rewards: Mapping[str, Reward]) -> None:
        for product_id in rewards:
            if not product_id:
                raise ValueError("Product ID required")
        self._rewards: Mapping[str, Reward] = MappingProxyType(dict(rewards))

    def resolve(self, product_id: str) -> Reward | None:
        """
        Get the reward for a product.

        Args:
            product_id: Store product ID

        Returns:
            Reward, or None if the product is not in the catalog
        """
        return self._rewards.get(product_id)

    @property
    def product_ids(self) -> list[str]:
        return sorted(self._rewards)

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._rewards

    def __len__(self) -> int:
        return len(self._rewards)

    def __iter__(self) -> Iterator[str]:
        return iter(self._rewards)

    @classmethod
    def default(cls) -> "RewardCatalog":
        return cls(DEFAULT_REWARDS)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Mapping[str, str]]) -> "RewardCatalog":
        """
        Build a catalog from plain data.

        Expected shape: {"<product_id>": {"contract": "0x...", "amount": "100"}}

        Raises:
            ValueError: If an entry is missing fields or has an invalid amount
        """
        rewards: dict[str, Reward] = {}
        for product_id, entry in data.items():
            try:
                rewards[product_id] = Reward(
                    contract_address=str(entry["contract"]),
                    amount=str(entry["amount"]),
                )
            except (KeyError, TypeError) as exc:
                raise ValueError(f"Invalid reward entry for {product_id!r}") from exc
        return cls(rewards)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "RewardCatalog":
        """Load a catalog from a JSON file."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Reward catalog must be a JSON object: {path}")

        catalog = cls.from_mapping(data)
        logger.info("reward_catalog_loaded", path=str(path), products=len(catalog))
        return catalog
