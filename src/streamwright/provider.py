import json
import logging
import os
from typing import Any

import httpx

from streamwright.dispatcher import TextSink
from streamwright.errors import APIStatusError
from streamwright.instrumentation import record_error, record_usage, stream_span
from streamwright.message import AssembledMessage
from streamwright.runner import assemble_response

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.anthropic.com/v1"
DEFAULT_MODEL = "claude-3-5-sonnet-20240620"
DEFAULT_MAX_TOKENS = 2048
API_VERSION = "2023-06-01"


class MessagesClient:
    """Opens streaming ``/messages`` requests and assembles the reply.

    The request body is built by the caller; this client only fills in
    the defaults the endpoint requires and owns the HTTP response for
    the lifetime of the stream.

    Args:
        api_key: Falls back to ``ANTHROPIC_API_KEY``.
        base_url: Falls back to ``ANTHROPIC_BASE_URL``, then the public
            endpoint.
        model: Used when a payload names no model.
        timeout: Passed to ``httpx``; read timeouts surface from the
            transport, not from the assembler.
        transport: Optional ``httpx`` transport, e.g. for tests.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float = 600.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        if not api_key:
            api_key = os.getenv("ANTHROPIC_API_KEY")
        if not base_url:
            base_url = os.getenv("ANTHROPIC_BASE_URL") or DEFAULT_BASE_URL
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "x-api-key": api_key or "",
                "anthropic-version": API_VERSION,
                "content-type": "application/json",
            },
            timeout=timeout,
            transport=transport,
        )

    def prepare_payload(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of *payload* with streaming defaults applied."""
        body = dict(payload)
        if not body.get("max_tokens"):
            body["max_tokens"] = DEFAULT_MAX_TOKENS
        if not body.get("stop_sequences"):
            body.pop("stop_sequences", None)
        if not body.get("model"):
            body["model"] = self.model or DEFAULT_MODEL
        body["stream"] = True
        return body

    async def stream_message(
        self,
        payload: dict[str, Any],
        on_text: TextSink | None = None,
    ) -> AssembledMessage:
        """Send *payload* and assemble the streamed message.

        Raises:
            APIStatusError: The endpoint answered with a non-2xx status.
            StreamError: The stream failed; see :mod:`streamwright.errors`.
        """
        body = self.prepare_payload(payload)
        request = self.client.build_request("POST", "/messages", json=body)
        async with stream_span("anthropic", body["model"]) as span:
            try:
                response = await self.client.send(request, stream=True)
                if not response.is_success:
                    try:
                        await response.aread()
                    finally:
                        await response.aclose()
                    raise _status_error(response)
                message = await assemble_response(response, on_text)
            except Exception as e:
                record_error(span, e)
                raise
            record_usage(span, message)
        logger.info(
            f"Streamed message {message.id} from {message.model}: "
            f"{message.usage.input_tokens} in, "
            f"{message.usage.output_tokens} out"
        )
        return message

    async def close(self) -> None:
        await self.client.aclose()


def _status_error(response: httpx.Response) -> APIStatusError:
    try:
        body = response.json()
    except json.JSONDecodeError:
        body = None
    error_type = None
    message = response.text or response.reason_phrase
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        error_type = body["error"].get("type")
        message = body["error"].get("message") or message
    return APIStatusError(
        response.status_code, message, error_type=error_type, body=body,
    )
