import os
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    SLACK_API_BASE_URL: str = os.getenv("SLACK_API_BASE_URL", "https://slack.com/api/")

    # API methods used by the adapter
    SLACK_SESSION_ENDPOINT: str = "rtm.start"
    SLACK_POST_ENDPOINT: str = "chat.postMessage"

    REQUEST_TIMEOUT_SECONDS: float = 10.0
    SOCKET_OPEN_TIMEOUT_SECONDS: float = 10.0
    SEND_WORKERS: int = 4  # Threads serving outbound calls

    WEBHOOK_HOST: str = "localhost"
    WEBHOOK_PORT: int = 3000
    WEBHOOK_PATH: str = "/"


settings = Settings()
