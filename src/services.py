"""Upstream clients + shared enricher for one process, built from settings."""

from dataclasses import dataclass

from loguru import logger

from config.settings import Settings, settings as default_settings
from src.parsers.helius.client import HeliusClient
from src.parsers.jupiter.client import JupiterClient
from src.parsers.magiceden.client import MagicEdenClient
from src.parsers.price_enricher import PriceEnricher, TokenListCache
from src.parsers.trenchbot.client import TrenchBotClient


@dataclass
class AnalysisServices:
    helius: HeliusClient
    jupiter: JupiterClient
    trenchbot: TrenchBotClient
    magiceden: MagicEdenClient
    enricher: PriceEnricher
    bundle_top_n: int = 3
    nft_search_timeout: float = 30.0

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "AnalysisServices":
        cfg = config or default_settings
        if not cfg.helius_api_key and not cfg.helius_rpc_url:
            logger.warning("[SERVICES] HELIUS_API_KEY not set, indexer calls will fail")

        jupiter = JupiterClient(
            api_key=cfg.jupiter_api_key,
            max_rps=cfg.jupiter_max_rps,
            timeout=cfg.jupiter_timeout_sec,
        )
        # The only cross-request state: one token list per process
        token_cache = TokenListCache(jupiter.get_verified_tokens, ttl=cfg.token_list_ttl_sec)

        return cls(
            helius=HeliusClient(
                api_key=cfg.helius_api_key,
                rpc_url=cfg.helius_rpc_url,
                max_rps=cfg.helius_max_rps,
                timeout=cfg.helius_timeout_sec,
            ),
            jupiter=jupiter,
            trenchbot=TrenchBotClient(
                base_url=cfg.trenchbot_base_url,
                max_rps=cfg.trenchbot_max_rps,
                timeout=cfg.trenchbot_timeout_sec,
            ),
            magiceden=MagicEdenClient(
                base_url=cfg.magiceden_base_url,
                max_rps=cfg.magiceden_max_rps,
                timeout=cfg.magiceden_timeout_sec,
            ),
            enricher=PriceEnricher(jupiter, token_cache),
            bundle_top_n=cfg.bundle_top_n,
            nft_search_timeout=cfg.helius_nft_search_timeout_sec,
        )

    async def close(self) -> None:
        for client in (self.helius, self.jupiter, self.trenchbot, self.magiceden):
            await client.close()
        logger.debug("[SERVICES] Upstream clients closed")
