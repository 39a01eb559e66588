from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):

    NEO4J_URI: str = "bolt://localhost:7687"
    NEO4J_USER: str = "neo4j"
    NEO4J_PASSWORD: str = "password"

    # Tokens are issued by the external auth provider and signed with this secret
    JWT_SECRET_KEY: str = "super_secret_key_change_me_in_prod"
    ALGORITHM: str = "HS256"
    JWT_AUDIENCE: Optional[str] = None

    PAGE_SIZE: int = 20
    MAX_TEAM_SIZE: int = 5
    TIMEZONE: str = "Asia/Kolkata"

    CORS_ORIGINS: List[str] = ["http://localhost:5173"]
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
