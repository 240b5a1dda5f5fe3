"""AWS Bedrock client wrapper with retry logic and error handling."""

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from .errors import BedrockAPIError, ErrorType, ErrorContext

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = frozenset({
    "ThrottlingException",
    "TooManyRequestsException",
    "ServiceUnavailableException",
    "InternalServerException",
    "RequestTimeout",
    "RequestTimeoutException"
})


class BedrockClient:
    """
    Wrapper for AWS Bedrock Runtime client with retry logic.

    Invokes Nova Pro through the Converse API, retrying throttling and
    availability errors with exponential backoff.
    """

    def __init__(
        self,
        region: str = "us-east-1",
        model_id: str = "amazon.nova-pro-v1:0",
        timeout: int = 120,
        max_retries: int = 3,
        runtime: Optional[Any] = None
    ):
        """
        Initialize Bedrock client.

        Args:
            region: AWS region for Bedrock service
            model_id: Model ID for Nova Pro
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
            runtime: Pre-built bedrock-runtime client (tests inject a stub)
        """
        self.region = region
        self.model_id = model_id
        self.max_retries = max_retries

        if runtime is not None:
            self.runtime = runtime
        else:
            config_kwargs: Dict[str, Any] = {
                "region_name": region,
                "connect_timeout": timeout,
                "read_timeout": timeout,
                "retries": {"max_attempts": 0},  # We handle retries manually
            }
            # Recent botocore honours AWS_BEARER_TOKEN_BEDROCK for API-key auth
            if os.getenv("AWS_BEARER_TOKEN_BEDROCK"):
                config_kwargs["signature_version"] = "bearer"
                logger.info("BedrockClient configured to use Amazon Bedrock API key authentication")
            else:
                logger.info("BedrockClient configured to use AWS IAM credentials (SigV4)")

            self.runtime = boto3.client("bedrock-runtime", config=Config(**config_kwargs))

        logger.info(
            f"Initialized BedrockClient: region={region}, "
            f"model={model_id}, max_retries={max_retries}"
        )

    async def invoke_nova_pro(
        self,
        messages: List[Dict[str, Any]],
        temperature: float = 0.0,
        max_tokens: int = 4096,
        system_prompts: Optional[List[Dict[str, Any]]] = None
    ) -> Dict[str, Any]:
        """
        Invoke Nova Pro model via Converse API with retry logic.

        Args:
            messages: List of message dicts with 'role' and 'content'
            temperature: Sampling temperature (0.0 = deterministic)
            max_tokens: Maximum tokens to generate
            system_prompts: Optional system prompts

        Returns:
            Dict with 'text', 'stop_reason' and 'usage'

        Raises:
            BedrockAPIError: If the call fails or retries are exhausted
        """
        params: Dict[str, Any] = {
            "modelId": self.model_id,
            "messages": messages,
            "inferenceConfig": {
                "temperature": temperature,
                "maxTokens": max_tokens
            }
        }

        if system_prompts:
            params["system"] = system_prompts

        for attempt in range(self.max_retries):
            try:
                logger.debug(
                    f"Invoking Nova Pro (attempt {attempt + 1}/{self.max_retries})"
                )

                response = self.runtime.converse(**params)

                logger.info(
                    f"Nova Pro invocation successful: "
                    f"stop_reason={response.get('stopReason')}, "
                    f"usage={response.get('usage')}"
                )

                return self._parse_converse_response(response)

            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                error_message = e.response.get("Error", {}).get("Message", str(e))

                logger.warning(
                    f"Bedrock API error (attempt {attempt + 1}/{self.max_retries}): "
                    f"code={error_code}, message={error_message}"
                )

                if error_code in RETRYABLE_ERRORS and attempt < self.max_retries - 1:
                    # Exponential backoff: 1s, 2s, 4s, ...
                    wait_time = 2 ** attempt
                    logger.info(f"Retrying in {wait_time} seconds...")
                    await asyncio.sleep(wait_time)
                    continue

                logger.error(
                    f"Bedrock API call failed after {attempt + 1} attempts: "
                    f"{error_code} - {error_message}"
                )
                raise BedrockAPIError.from_client_error(
                    error=e,
                    operation="invoke_nova_pro",
                    recoverable=False
                )

            except Exception as e:
                logger.error(f"Unexpected error invoking Nova Pro: {str(e)}")
                raise BedrockAPIError(ErrorContext(
                    error_type=ErrorType.BEDROCK_SERVICE_ERROR,
                    message=f"Unexpected error invoking Nova Pro: {str(e)}",
                    recoverable=False,
                    original_exception=e
                ))

        raise BedrockAPIError(ErrorContext(
            error_type=ErrorType.BEDROCK_SERVICE_ERROR,
            message=f"Failed to invoke Nova Pro after {self.max_retries} attempts",
            recoverable=False
        ))

    def _parse_converse_response(self, response: Dict[str, Any]) -> Dict[str, Any]:
        """Flatten a Converse API response to text, stop reason and usage."""
        message = response.get("output", {}).get("message", {})
        content = message.get("content", []) or []

        text_parts = [block["text"] for block in content if "text" in block]
        return {
            "text": "\n".join(text_parts),
            "stop_reason": response.get("stopReason", "unknown"),
            "usage": response.get("usage", {})
        }
