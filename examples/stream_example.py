"""Stream a completion to stdout and print the assembled message.

Demonstrates:
- Opening a streaming request with MessagesClient
- Printing text fragments as they arrive
- Reading text and tool-use blocks from the assembled message

Usage:
    uv run --env-file=.env examples/stream_example.py "What's the weather in NYC?"
    uv run examples/stream_example.py --model claude-3-5-haiku-20241022 "Tell me a joke"
"""

import argparse
import asyncio
import logging

from streamwright.errors import APIStatusError, StreamError
from streamwright.provider import MessagesClient

WEATHER_TOOL = {
    "name": "getWeather",
    "description": "Look up the current weather for a city.",
    "input_schema": {
        "type": "object",
        "properties": {"location": {"type": "string"}},
        "required": ["location"],
    },
}


def print_fragment(fragment: str) -> None:
    print(fragment, end="", flush=True)


async def main(prompt: str, model: str | None) -> None:
    client = MessagesClient(model=model)
    try:
        message = await client.stream_message(
            {
                "messages": [{"role": "user", "content": prompt}],
                "tools": [WEATHER_TOOL],
            },
            on_text=print_fragment,
        )
    except (APIStatusError, StreamError) as e:
        raise SystemExit(f"\nrequest failed: {e}")
    finally:
        await client.close()

    print()
    for use in message.tool_uses:
        print(f"-> {use.name}({use.input}) [{use.id}]")
    print(
        f"stop_reason={message.stop_reason} "
        f"input_tokens={message.usage.input_tokens} "
        f"output_tokens={message.usage.output_tokens}"
    )


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("prompt")
    parser.add_argument("--model", default=None)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()
    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING)
    asyncio.run(main(args.prompt, args.model))
