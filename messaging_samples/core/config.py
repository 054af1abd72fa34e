import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import Optional

# Load environment variables from .env file
load_dotenv()

class Settings(BaseSettings):
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Azure Service Bus
    AZURE_SERVICEBUS_CONNECTION_STRING: Optional[str] = None
    AZURE_SERVICEBUS_MAX_MESSAGE_COUNT: int = int(os.getenv("AZURE_SERVICEBUS_MAX_MESSAGE_COUNT", "1"))
    AZURE_SERVICEBUS_MAX_WAIT_SECONDS: float = float(os.getenv("AZURE_SERVICEBUS_MAX_WAIT_SECONDS", "5"))

    # Entity names used by the samples
    BASIC_QUEUE_NAME: str = os.getenv("BASIC_QUEUE_NAME", "BasicQueue")
    BASIC_QUEUE2_NAME: str = os.getenv("BASIC_QUEUE2_NAME", "BasicQueue2")
    DUPDETECT_QUEUE_NAME: str = os.getenv("DUPDETECT_QUEUE_NAME", "DupdetectQueue")
    AUTOFORWARD_SOURCE_TOPIC_NAME: str = os.getenv("AUTOFORWARD_SOURCE_TOPIC_NAME", "AutoForwardSourceTopic")
    AUTOFORWARD_TARGET_QUEUE_NAME: str = os.getenv("AUTOFORWARD_TARGET_QUEUE_NAME", "AutoForwardTargetQueue")

    # Geo-replication receiver
    GEO_DEDUPLICATION_LIST_LENGTH: int = int(os.getenv("GEO_DEDUPLICATION_LIST_LENGTH", "256"))

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

# Create settings instance
settings = Settings()
