from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = ""

    # RPC API keys (substituted into {PLACEHOLDER} markers of registry endpoints)
    INFURA_API_KEY: str = ""
    ALCHEMY_API_KEY: str = ""
    HELIUS_API_KEY: str = ""

    # Honeypot / liquidity services
    HONEYPOT_API_URL: str = "https://api.honeypot.is/v2/IsHoneypot"
    DEXSCREENER_API_URL: str = "https://api.dexscreener.com/latest/dex/tokens"
    JUPITER_PRICE_URL: str = "https://api.jup.ag/price/v2"
    RUGCHECK_API_URL: str = "https://api.rugcheck.xyz/v1/tokens"
    COINGECKO_API_URL: str = "https://api.coingecko.com/api/v3"

    # Social sources
    TWITTER_API_URL: str = "https://api.twitter.com/2"
    TWITTER_BEARER_TOKEN: str = ""
    NITTER_URL: str = "https://nitter.net"
    GITHUB_API_URL: str = "https://api.github.com"
    GITHUB_TOKEN: str = ""
    TELEGRAM_PREVIEW_URL: str = "https://t.me"
    REDDIT_SEARCH_URL: str = "https://www.reddit.com/search.json"
    WHOIS_API_URL: str = "https://api.whois.vu/"

    # Result signing: 'hmac' (shared secret) or 'eth' (secp256k1 private key)
    SIGNING_SCHEME: str = "hmac"
    SIGNING_KEY: str = ""

    # Content-addressed storage
    PINATA_API_URL: str = "https://api.pinata.cloud"
    PINATA_JWT: str = ""
    IPFS_API_URL: str = ""
    IPFS_GATEWAY_URLS: str = "https://gateway.pinata.cloud/ipfs,https://ipfs.io/ipfs,https://dweb.link/ipfs"

    # Time budget (seconds)
    SCAN_DEADLINE_SECONDS: float = 25.0
    SUBTASK_TIMEOUT_SECONDS: float = 10.0
    PROVIDER_TIMEOUT_SECONDS: float = 5.0
    RPC_TIMEOUT_SECONDS: float = 10.0

    # Application
    API_SECRET_KEY: str = "dev-secret-key"
    LOG_LEVEL: str = "INFO"
    ENVIRONMENT: str = "development"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
