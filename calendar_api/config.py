from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # App
    APP_NAME: str = "Calendar API"
    HOST: str = "0.0.0.0"
    PORT: int = 3001
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    # MongoDB
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB_NAME: str = "calendar"
    MONGO_COLL_NAME: str = "events"
    MONGO_TIMEOUT_MS: int = 5000

    class Config:
        env_file = ".env"
        extra = "ignore"

settings = Settings()
