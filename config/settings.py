from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Helius (Solana RPC + DAS API)
    helius_api_key: str = ""
    helius_rpc_url: str = ""  # defaults to mainnet RPC with helius_api_key
    helius_max_rps: float = 10.0
    helius_timeout_sec: float = 15.0
    helius_nft_search_timeout_sec: float = 30.0  # searchAssets for NFTs can be slow

    # Jupiter (prices + verified token list)
    jupiter_api_key: str = ""
    jupiter_max_rps: float = 1.0  # free tier
    jupiter_timeout_sec: float = 10.0
    token_list_ttl_sec: float = 300.0  # 5 min

    # TrenchBot bundle analysis
    trenchbot_base_url: str = "https://trench.bot/api/bundle/bundle_advanced"
    trenchbot_max_rps: float = 2.0
    trenchbot_timeout_sec: float = 15.0

    # Magic Eden (NFT floor prices)
    magiceden_base_url: str = "https://api-mainnet.magiceden.dev/v2"
    magiceden_max_rps: float = 2.0
    magiceden_timeout_sec: float = 5.0

    # Portfolio analysis workflow
    bundle_top_n: int = 3  # each token = 2 upstream calls (TrenchBot + Helius)

    # API server
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    api_rate_limit: str = "10/minute"  # full analysis fans out to ~10 upstream calls
    api_debug: bool = False

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False


settings = Settings()
