"""
Mint Dispatcher - Authorizes reward mints through thirdweb Engine.

Engine signs and submits the mint from a backend wallet it manages; this
service only asks for it.
"""

from typing import Any

import httpx
from structlog import get_logger

from app.exceptions import MintDispatchError
from app.models.domain import Reward

logger = get_logger(__name__)


class MintDispatcher:
    """Client for the Engine ERC-20 mint-to endpoint."""

    def __init__(
        self,
        engine_url: str,
        chain_id: str,
        backend_wallet: str,
        api_secret_key: str,
        timeout: float = 30.0,
    ) -> None:
        self.engine_url = engine_url.rstrip("/")
        self.chain_id = chain_id
        self.backend_wallet = backend_wallet
        self.api_secret_key = api_secret_key
        self.timeout = timeout

    def mint_url(self, reward: Reward) -> str:
        return f"{self.engine_url}/contract/{self.chain_id}/{reward.contract_address}/erc20/mint-to"

    @property
    def headers(self) -> dict[str, str]:
        return {
            "x-backend-wallet-address": self.backend_wallet,
            "Authorization": f"Bearer {self.api_secret_key}",
        }

    async def dispatch_mint(self, to_address: str, reward: Reward) -> Any:
        """
        Ask Engine to mint a reward to an address.

        Args:
            to_address: Destination of the reward
            reward: Contract and amount to mint

        Returns:
            Engine's JSON response body, unchanged

        Raises:
            MintDispatchError: If the call fails or Engine reports an error
        """
        body = {"toAddress": to_address, "amount": reward.amount}
        logger.info(
            "mint_dispatch_started",
            contract=reward.contract_address,
            chain_id=self.chain_id,
            amount=reward.amount,
        )

        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.mint_url(reward),
                    json=body,
                    headers=self.headers,
                    timeout=self.timeout,
                )
        except httpx.HTTPError as exc:
            logger.error("mint_dispatch_transport_error", error=str(exc))
            raise MintDispatchError(f"Engine unreachable: {type(exc).__name__}") from exc

        if response.status_code >= 400:
            logger.error(
                "mint_dispatch_rejected",
                status=response.status_code,
                error=response.text[:500],
            )
            raise MintDispatchError(
                f"Engine returned {response.status_code}", status_code=response.status_code
            )

        try:
            result = response.json()
        except ValueError as exc:
            raise MintDispatchError("Engine returned invalid JSON") from exc

        logger.info("mint_dispatch_completed", status=response.status_code)
        return result
