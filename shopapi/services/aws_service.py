import logging

import boto3

from shopapi.config import Settings

logger = logging.getLogger(__name__)


class AwsService:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.aws_access_key_id = settings.AWS_ACCESS_KEY_ID
        self.aws_secret_access_key = settings.AWS_SECRET_ACCESS_KEY
        self.region_name = settings.AWS_REGION

    def _client(self, service: str):
        if self.aws_access_key_id and self.aws_secret_access_key:
            return boto3.client(
                service,
                region_name=self.region_name,
                aws_access_key_id=self.aws_access_key_id,
                aws_secret_access_key=self.aws_secret_access_key,
            )

        return boto3.client(service, region_name=self.region_name)

    def send_email(self, to_email: str, subject: str, body_html: str) -> str:
        """SES로 HTML 메일 발송 후 MessageId 반환 (실패 시 예외 전파)"""
        ses = self._client("ses")
        response = ses.send_email(
            Source=self.settings.SES_FROM_EMAIL,
            Destination={"ToAddresses": [to_email]},
            Message={
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {"Html": {"Data": body_html, "Charset": "UTF-8"}},
            },
        )
        message_id = response["MessageId"]
        logger.info(f"Email sent to {to_email}, MessageId: {message_id}")
        return message_id
