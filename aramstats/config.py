# config.py – Chargement des paramètres via pydantic-settings

from typing import List, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # — Source wiki —
    WIKI_URL: str = "https://leagueoflegends.fandom.com/wiki/Module:ChampionData/data?action=edit"
    WIKI_BOOTSTRAP_URL: str = "https://leagueoflegends.fandom.com/wiki/League_of_Legends_Wiki"
    WIKI_COOKIE: Optional[str] = None   # cookie brut, court-circuite le bootstrap

    # — Chaîne de fetch —
    PROXY_URLS: List[str] = [
        "https://corsproxy.io/?",
        "https://api.allorigins.win/raw?url=",
    ]
    HTTP_TIMEOUT: float = 20.0          # secondes (direct + relais)
    COOKIE_TTL: int = 30 * 60           # secondes
    HEADLESS_ENABLED: bool = True
    HEADLESS_TIMEOUT: float = 45.0      # secondes (navigation)
    HEADLESS_SETTLE_MS: int = 3000
    HEADLESS_PERSISTENT: bool = False   # garder Chromium ouvert entre deux appels

    # — PocketBase (cache durable) —
    POCKETBASE_URL: str = "https://lol.andy-cinquin.fr"
    POCKETBASE_TOKEN: str = Field(
        default="",
        validation_alias=AliasChoices("POCKETBASE_TOKEN", "PB_TOKEN"),
    )
    POCKETBASE_COLLECTION: str = "data"
    POCKETBASE_RECORD_ID: str = "latestaramdata1"  # 15 caractères exactement

    # — Politique de cache —
    CACHE_MAX_AGE_MS: int = 24 * 60 * 60 * 1000

    # — API opérateur —
    REFRESH_SECRET: Optional[str] = None
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

settings = Settings()
