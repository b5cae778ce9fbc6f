"""Chat platform credentials."""

from pydantic import BaseModel, SecretStr


class ChannelConfig(BaseModel, frozen=True):
    """Bot credentials for the supported chat platforms."""

    slack_bot_token: SecretStr
    telegram_bot_token: SecretStr
    telegram_api_url: str

    @property
    def slack_enabled(self) -> bool:
        return bool(self.slack_bot_token.get_secret_value().strip())

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token.get_secret_value().strip())
