#!/usr/bin/env python

"""
Command-line entry point for Comlink.

Resolve natural-language requests against the built-in tool catalog, either
one message at a time or in an interactive session.
"""

import argparse
import asyncio
import json
import logging
import sys
import traceback

from comlink.config import print_settings, settings
from comlink.discovery_scanner import ScanResult
from comlink.engine import ResolutionEngine, create_engine
from comlink.intent_resolver import ExecutionResult
from comlink.utils.analytics import dashboard


logger = logging.getLogger(__name__)


def print_result(result: ExecutionResult) -> None:
    """Print an execution result in human-readable form."""
    marker = "✔" if result.success else "✘"
    print(f"\n{marker} {result.content}")

    for item in result.media or []:
        print(f"  [{item.type}] {item.title or ''} {item.url}".rstrip())

    if result.invocation:
        print(f"  -> {result.invocation.tool_id} {json.dumps(result.invocation.arguments)}")


def print_scan(result: ScanResult) -> None:
    """Print a scan result."""
    print(f"\nScan {result.status.value}: {result.tools_found} tools found, {len(result.new_tools)} new")
    for tool in result.new_tools:
        print(f"  + {tool.id} - {tool.description}")
    for error in result.errors:
        print(f"  ! {error}")


async def process_message_command(engine: ResolutionEngine, user_id: str, message: str,
                                  as_json: bool = False) -> None:
    """
    Resolve a single message and display the result.

    Args:
        engine: Engine to resolve with
        user_id: User the message is sent as
        message: The message to resolve
        as_json: Print the raw result as JSON
    """
    result = await engine.resolve_and_execute(user_id, message)

    if as_json:
        print(json.dumps(result.model_dump(mode="json"), indent=2))
    else:
        print_result(result)


async def interactive_mode(engine: ResolutionEngine, user_id: str) -> None:
    """
    Run in interactive mode, resolving messages from the user.
    """
    print("Comlink - tool resolution engine")
    print("Type 'exit' or 'quit' to exit, 'help' for commands, '!help' for session commands.")

    while True:
        try:
            message = input(f"\n{user_id}> ")

            if message.lower() in ["exit", "quit"]:
                break

            if message.startswith("!"):
                await handle_special_command(engine, message)
                continue

            await process_message_command(engine, user_id, message)

        except (KeyboardInterrupt, EOFError):
            print("\nExiting...")
            break
        except Exception as e:
            print(f"\n✘ Error: {e}")


async def handle_special_command(engine: ResolutionEngine, command: str) -> None:
    """
    Handle session commands in interactive mode.

    Args:
        engine: Engine of the session
        command: The command to handle
    """
    command = command.lower().strip()

    if command == "!stats":
        metrics = dashboard.get_metrics()

        print("\nUsage Statistics:")
        print(f"  Total intents: {metrics.total_intents}")
        print(f"  Fallback classifications: {metrics.fallback_classifications}")
        print(f"  Total scans: {metrics.total_scans}")
        print(f"  Total errors: {metrics.total_errors}")
        for intent_type, count in sorted(metrics.intents_by_type.items()):
            print(f"    {intent_type}: {count}")
        print(f"  Session started: {metrics.session_start.strftime('%Y-%m-%d %H:%M:%S')}")

        recent = dashboard.get_recent_events(5)
        if recent:
            print("\nRecent events:")
            for event in recent:
                print(f"  {event.timestamp.strftime('%H:%M:%S')} {event.event_type} {event.component}")

    elif command == "!scan":
        print_scan(await engine.scan_for_tools(force=True))

    elif command == "!cache":
        stats = engine.cache_stats()
        last_scan = stats.last_scan_time.strftime('%Y-%m-%d %H:%M:%S') if stats.last_scan_time else "never"
        print(f"\nCached tools: {stats.total} (last scan: {last_scan})")
        for tool in engine.registry.all_tools():
            print(f"  • {tool.name} ({tool.id})")

    elif command == "!settings":
        print("\n" + print_settings())

    elif command == "!help":
        print("\nSession commands:")
        print("  !stats: Show usage statistics")
        print("  !scan: Force a discovery scan")
        print("  !cache: Show the tool cache")
        print("  !settings: Show current settings")

    else:
        print(f"Unknown command {command}, try !help")


async def main():
    """
    Main entry point for the CLI.
    """
    parser = argparse.ArgumentParser(description="Comlink - natural-language tool resolution")
    parser.add_argument("message", nargs="?", help="The message to resolve")
    parser.add_argument("--interactive", "-i", action="store_true", help="Run in interactive mode")
    parser.add_argument("--json", "-j", action="store_true", help="Output in JSON format")
    parser.add_argument("--user", "-u", default="cli-user", help="User id to resolve messages as")
    parser.add_argument("--scan", action="store_true", help="Force a discovery scan and show its result")
    parser.add_argument("--settings", "-s", action="store_true", help="Show current settings")
    parser.add_argument("--debug", action="store_true", help="Enable debug mode")
    parser.add_argument("--quiet", "-q", action="store_true", help="Suppress non-essential output")

    args = parser.parse_args()

    if args.debug or settings.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.info("Debug mode enabled")

    if args.quiet:
        logging.getLogger().setLevel(logging.WARNING)

    if args.settings:
        print(print_settings())
        return

    engine = create_engine()

    scan_result = await engine.scan_for_tools(force=args.scan)
    if args.scan:
        print_scan(scan_result)

    if args.interactive:
        await interactive_mode(engine, args.user)
    elif args.message:
        await process_message_command(engine, args.user, args.message, as_json=args.json)
    elif not args.scan:
        parser.print_help()


def run() -> None:
    """Console script entry point."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nExiting...")
        sys.exit(0)
    except Exception as e:
        print(f"Error: {e}")
        if logging.getLogger().getEffectiveLevel() <= logging.DEBUG:
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    run()
