"""
Amazon SES Email Provider implementation.

Sends raw MIME messages with aioboto3.
"""
from __future__ import annotations

from botocore.exceptions import BotoCoreError, ClientError

from ...config import get_logger
from ...exceptions import EmailSendError, ProviderInitError
from ..aws import client_config, create_aws_session
from ..configs import EmailConfig
from .interface import EmailProviderInterface
from .messages import EmailMessage, build_mime_message

logger = get_logger("email.ses")

_RETRYABLE_SES_CODES = frozenset({
    "Throttling",
    "ThrottlingException",
    "ServiceUnavailable",
    "InternalFailure",
    "RequestTimeout",
})


class SESEmailProvider(EmailProviderInterface):
    """Email delivery through Amazon Simple Email Service."""

    def __init__(self, config: EmailConfig) -> None:
        super().__init__(config)
        self._session = None
        self._boto_config = client_config(config.send_timeout)

    async def initialize(self) -> None:
        if not self._config.aws_access_key_id or not self._config.aws_secret_access_key:
            raise ProviderInitError(
                "AWS credentials not configured",
                details="Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY",
                provider="ses",
            )
        self._session = create_aws_session(
            self._config.aws_access_key_id,
            self._config.aws_secret_access_key,
            self._config.ses_region,
        )
        self._initialized = True
        logger.info("SES email initialized (region: %s)", self._config.ses_region)

    def _client(self):
        return self._session.client("ses", config=self._boto_config)

    async def _deliver(self, message: EmailMessage) -> str | None:
        mime = build_mime_message(message, self.sender)
        try:
            async with self._client() as ses:
                response = await ses.send_raw_email(
                    Source=self.sender,
                    Destinations=[message.recipient],
                    RawMessage={"Data": mime.as_bytes()},
                )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code", "")
            raise EmailSendError(
                f"SES rejected message ({code or 'unknown'})",
                details=str(e),
                provider="ses",
                retryable=code in _RETRYABLE_SES_CODES,
            ) from e
        return response.get("MessageId")

    async def health_check(self) -> bool:
        """Check credentials and sending quota."""
        if not self.is_available():
            return False
        try:
            async with self._client() as ses:
                await ses.get_send_quota()
            return True
        except (BotoCoreError, ClientError) as e:
            logger.warning("SES health check failed: %s", e)
            return False

    def get_provider_name(self) -> str:
        return "ses"

    async def close(self) -> None:
        self._session = None
        await super().close()
