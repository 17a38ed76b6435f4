"""Function-calling example: a weather assistant.

Demonstrates:
- Defining tools with @tool
- Enabling them per call through ChatOptions
- Batch (call) and streaming (stream) conversations

Usage:
    STEPFUN_API_KEY=... python examples/weather_example.py --stream
    STEPFUN_API_KEY=... python examples/weather_example.py --model step-1-32k --trace
"""

import argparse
import asyncio
import logging

from stepchat import ChatClient, ChatOptions, Prompt, StepFunApi, tool
from stepchat.log import configure_logging
from stepchat.message import system, user
from stepchat.options import TOOL_CHOICE_AUTO

FORECASTS = {
    "oslo": {"temperature": 4, "conditions": "sleet"},
    "lisbon": {"temperature": 19, "conditions": "sunny"},
}


@tool
def current_weather(city: str, unit: str = "C"):
    """Get the current weather for a city.

    Args:
        city: City name, e.g. "Oslo".
        unit: "C" or "F".
    """
    forecast = FORECASTS.get(city.lower())
    if forecast is None:
        return f"No forecast for {city}"
    temperature = forecast["temperature"]
    if unit.upper() == "F":
        temperature = round(temperature * 9 / 5 + 32)
    return {"city": city, "temperature": temperature, "unit": unit.upper(),
            "conditions": forecast["conditions"]}


def setup_tracing(service_name: str):
    from opentelemetry import trace
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from stepchat.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    trace.set_tracer_provider(provider)
    instrument()


async def main(args):
    client = ChatClient(StepFunApi())
    prompt = Prompt(
        [
            system("You answer weather questions using the tools provided."),
            user(args.question),
        ],
        ChatOptions(
            model=args.model,
            function_callbacks=[current_weather],
            tool_choice=TOOL_CHOICE_AUTO,
        ),
    )

    if not args.stream:
        response = await client.call(prompt)
        print(response.result.content if response.result else "(no answer)")
        if response.usage:
            print(f"[tokens: {response.usage.total_tokens}]")
        return

    async for response in client.stream(prompt):
        if response.result:
            print(response.result.content, end="", flush=True)
    print()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--model", default="step-1v")
    parser.add_argument("--stream", action="store_true")
    parser.add_argument("--trace", action="store_true")
    parser.add_argument("--verbose", action="store_true")
    parser.add_argument(
        "question", nargs="?", default="Should I bring an umbrella in Oslo?",
    )
    args = parser.parse_args()

    configure_logging(logging.DEBUG if args.verbose else logging.WARNING)
    if args.trace:
        setup_tracing("stepchat-weather")
    asyncio.run(main(args))
