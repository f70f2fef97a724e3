"""Summarization module using Amazon Bedrock."""

import json
import time

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .config import BedrockConfig
from .errors import UpstreamError
from .logging_config import create_execution_logger

ANTHROPIC_VERSION = "bedrock-2023-05-31"

PROMPT_TEMPLATE = (
    "\n\nHuman: Remove all html tags and summarize the following text in "
    "{max_graphemes} graphemes or less:\n\n{content}\n\nAssistant:"
)


class Summarizer:
    """Summarizer that asks a Bedrock Anthropic model for a short summary."""

    def __init__(self, config: BedrockConfig, execution_id: str | None = None):
        """Initialize the summarizer with Bedrock configuration."""
        self.config = config
        self.logger = create_execution_logger("summarizer", execution_id)
        self.bedrock_client = boto3.client(
            "bedrock-runtime", region_name=self.config.region
        )
        self.logger.info(
            "Initialized Bedrock client",
            region=self.config.region,
            model=self.config.model_id,
        )

    def build_request(self, content: str) -> dict:
        """Build the invoke_model body for the Anthropic messages API."""
        prompt = PROMPT_TEMPLATE.format(
            max_graphemes=self.config.max_graphemes, content=content
        )
        return {
            "anthropic_version": ANTHROPIC_VERSION,
            "max_tokens": self.config.max_tokens,
            "messages": [
                {"role": "user", "content": [{"type": "text", "text": prompt}]}
            ],
            "temperature": 0.0,
            "top_p": 0,
        }

    def summarize(self, content: str, guid: str | None = None) -> str | None:
        """Generate a summary for free text.

        Args:
            content: Text to summarize
            guid: Feed item guid, used for logging and error context

        Returns:
            Stripped summary text, or None if the model returned no text

        Raises:
            UpstreamError: If the Bedrock call fails or returns malformed JSON
        """
        request_body = self.build_request(content)

        try:
            self.logger.info(
                "Calling Bedrock API",
                model_id=self.config.model_id,
                content_length=len(content),
                guid=guid,
            )
            start_time = time.time()
            response = self.bedrock_client.invoke_model(
                modelId=self.config.model_id,
                body=json.dumps(request_body),
                contentType="application/json",
                accept="application/json",
            )
            response_time_ms = int((time.time() - start_time) * 1000)
            response_body = json.loads(response["body"].read())
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            error_message = e.response.get("Error", {}).get("Message", "")
            self.logger.error(
                f"Bedrock client error: {error_code} - {error_message}",
                error_code=error_code,
                guid=guid,
            )
            raise UpstreamError(
                f"Bedrock invoke_model failed with {error_code}",
                operation="summarize",
                guid=guid,
                model_id=self.config.model_id,
            ) from e
        except (BotoCoreError, ValueError, KeyError) as e:
            self.logger.error(
                f"Unexpected error calling Bedrock: {e}", error=str(e), guid=guid
            )
            raise UpstreamError(
                f"Bedrock invoke_model failed: {e}",
                operation="summarize",
                guid=guid,
                model_id=self.config.model_id,
            ) from e

        summary_text = self._extract_text(response_body)
        usage = response_body.get("usage", {}) if isinstance(response_body, dict) else {}
        self.logger.info(
            "Bedrock response received",
            guid=guid,
            response_time_ms=response_time_ms,
            input_tokens=usage.get("input_tokens"),
            output_tokens=usage.get("output_tokens"),
            response_length=len(summary_text) if summary_text else 0,
        )

        if not summary_text or not summary_text.strip():
            self.logger.warning(
                f"Empty response from model {self.config.model_id}", guid=guid
            )
            return None
        return summary_text.strip()

    @staticmethod
    def _extract_text(response_body) -> str | None:
        if not isinstance(response_body, dict):
            return None
        content = response_body.get("content")
        if not isinstance(content, list) or not content:
            return None
        first = content[0]
        if not isinstance(first, dict):
            return None
        text = first.get("text")
        return text if isinstance(text, str) else None
