"""CLI entry point for ollama-bridge.

Thin terminal wrapper over OllamaAdapter for smoke-testing a local Ollama
server with the same translation path library callers use.

Entry point:
    ollama-bridge check
    ollama-bridge generate "Why is the sky blue?" [--stream] [--system TEXT]
    ollama-bridge embed "some text"
    ollama-bridge count-tokens "some text"
    ollama-bridge json "Describe a cat" --schema schema.json
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from ollama_bridge.adapters.base import ContentGenerator
from ollama_bridge.adapters.ollama import OllamaAdapter, OllamaError
from ollama_bridge.config import OllamaSettings
from ollama_bridge.schema import Content, Part

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ollama-bridge",
        description="Gemini-style content generation against a local Ollama server.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    parser.add_argument("--host", default=None, help="Ollama base URL (default: $OLLAMA_HOST)")
    parser.add_argument("--model", default=None, help="Generation model (default: $OLLAMA_MODEL)")
    sub = parser.add_subparsers(dest="command")

    # check
    sub.add_parser("check", help="Probe the server and list installed models")

    # generate
    gen_p = sub.add_parser("generate", help="Generate a reply to a prompt")
    gen_p.add_argument("prompt", help="User prompt")
    gen_p.add_argument("--system", default=None, help="Optional system instruction")
    gen_p.add_argument("--stream", action="store_true", help="Print chunks as they arrive")

    # embed
    embed_p = sub.add_parser("embed", help="Embed text with the embedding model")
    embed_p.add_argument("text", help="Text to embed")

    # count-tokens
    count_p = sub.add_parser("count-tokens", help="Estimate token count (chars / 4)")
    count_p.add_argument("text", help="Text to estimate")

    # json
    json_p = sub.add_parser("json", help="Generate JSON shaped like a schema")
    json_p.add_argument("prompt", help="User prompt")
    json_p.add_argument("--schema", required=True, help="Schema file path or inline JSON")

    return parser


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


def _warn_stderr(message: str) -> None:
    print(f"Warning: {message}", file=sys.stderr)


def _user_turns(prompt: str, system: Optional[str] = None) -> list[Content]:
    turns = []
    if system:
        turns.append(Content(role="system", parts=(Part.from_text(system),)))
    turns.append(Content(role="user", parts=(Part.from_text(prompt),)))
    return turns


def _load_schema(value: str) -> dict[str, Any]:
    """Read a schema from a file path, or parse it as inline JSON."""
    path = Path(value)
    text = path.read_text() if path.is_file() else value
    schema = json.loads(text)
    if not isinstance(schema, dict):
        raise ValueError("schema must be a JSON object")
    return schema


async def _cmd_check(adapter: OllamaAdapter) -> int:
    """Run the connectivity probe in the foreground. Returns exit code."""
    models = await adapter.check_connection()
    if models is None:
        return 1
    for name in models:
        print(name)
    return 0


async def _cmd_generate(
    adapter: ContentGenerator,
    prompt: str,
    system: Optional[str] = None,
    stream: bool = False,
) -> int:
    """Generate a reply. Returns exit code."""
    request = {"contents": _user_turns(prompt, system)}

    if stream:
        async for chunk in adapter.generate_stream(request):
            sys.stdout.write(chunk.text)
            sys.stdout.flush()
        sys.stdout.write("\n")
        return 0

    response = await adapter.generate(request)
    print(response.text)
    for call in response.function_calls:
        print(f"[function call] {call.name}({json.dumps(call.args or {})})")
    if response.usage_metadata is not None:
        usage = response.usage_metadata
        print(
            f"tokens: prompt={usage.prompt_token_count} "
            f"completion={usage.candidates_token_count} total={usage.total_token_count}",
            file=sys.stderr,
        )
    return 0


async def _cmd_embed(adapter: ContentGenerator, text: str) -> int:
    """Print the embedding vector as JSON. Returns exit code."""
    response = await adapter.embed({"contents": _user_turns(text)})
    values = response.embeddings[0].values if response.embeddings else ()
    json.dump(list(values), sys.stdout)
    sys.stdout.write("\n")
    return 0


async def _cmd_count_tokens(adapter: ContentGenerator, text: str) -> int:
    response = await adapter.count_tokens({"contents": _user_turns(text)})
    print(response.total_tokens)
    return 0


async def _cmd_json(adapter: ContentGenerator, prompt: str, schema_arg: str) -> int:
    """Generate JSON for a schema. Returns exit code."""
    try:
        schema = _load_schema(schema_arg)
    except (OSError, ValueError) as e:
        print(f"Error: invalid schema: {e}", file=sys.stderr)
        return 1

    result = await adapter.generate_json(_user_turns(prompt), schema)
    json.dump(result, sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


async def _dispatch(args: argparse.Namespace, adapter: OllamaAdapter) -> int:
    try:
        if args.command == "check":
            return await _cmd_check(adapter)
        if args.command == "generate":
            return await _cmd_generate(adapter, args.prompt, system=args.system, stream=args.stream)
        if args.command == "embed":
            return await _cmd_embed(adapter, args.text)
        if args.command == "count-tokens":
            return await _cmd_count_tokens(adapter, args.text)
        if args.command == "json":
            return await _cmd_json(adapter, args.prompt, args.schema)
    except OllamaError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 1


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def _make_adapter(args: argparse.Namespace) -> OllamaAdapter:
    settings = OllamaSettings.from_env()
    if args.host:
        settings = settings.model_copy(update={"host": args.host})
    if args.model:
        settings = settings.model_copy(update={"model": args.model})
    # `check` runs the probe itself, in the foreground
    return OllamaAdapter.from_settings(
        settings,
        check_connection=args.command != "check",
        warn=_warn_stderr,
    )


def main(argv: Optional[list[str]] = None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    # Load env
    load_dotenv()

    adapter = _make_adapter(args)
    logger.debug(f"Dispatching '{args.command}' to {adapter.host} (model={adapter.model})")
    code = asyncio.run(_dispatch(args, adapter))
    sys.exit(code)


if __name__ == "__main__":
    main()
