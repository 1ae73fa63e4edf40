#!/usr/bin/env python3
"""
Interactive CLI for the Pantry Assistant orchestration core

A REPL for talking to the conversation manager: every line is processed as
one utterance of a single conversation, and the routing decision or the
clarification question is printed.

Usage:
    python -m pantry_core.cli.interactive

    or

    cd src
    python pantry_core/cli/interactive.py --verbose
"""
import asyncio
import json
import sys
import logging
from pathlib import Path

# Add src/ to path if running directly
if __name__ == "__main__":
    src_path = Path(__file__).parent.parent.parent
    if str(src_path) not in sys.path:
        sys.path.insert(0, str(src_path))

from pantry_core.app import PantryApp, create_app
from pantry_core.conversation.models import ConversationResult
from pantry_nlu.logging_config import generate_request_id, log_with_context

logger = logging.getLogger("pantry_core.cli")

EXIT_COMMANDS = ['quit', 'exit', 'q']


def print_banner():
    """Print welcome banner."""
    print("\n" + "=" * 60)
    print("🛒 Pantry Assistant - Interactive Mode")
    print("=" * 60)
    print("\nCommands:")
    print("  - Type a message to process")
    print("  - /stats            show conversation stats")
    print("  - /clear            start a fresh conversation context")
    print("  - /cancel           drop the pending clarification")
    print("  - /lang <code>      set the response language (zh-CN, en-US)")
    print("  - Type 'quit' or 'exit' to quit")
    print("\nExamples:")
    print("  - '抽纸消耗1包'")
    print("  - '导入淘宝订单'")
    print("  - 'analyze spending this month'")
    print("=" * 60)


def print_result(result: ConversationResult, verbose: bool = False):
    """
    Print a conversation result.

    Args:
        result: Result of ConversationManager.process
        verbose: If True, dump the whole result as JSON
    """
    if verbose:
        print()
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        return

    if not result.success:
        print(f"\n❌ Error: {result.error}")

    if result.requires_clarification and result.clarification_request:
        request = result.clarification_request
        print(f"\n❓ {request.question}")
        if request.suggested_responses:
            print(f"   Suggestions: {', '.join(request.suggested_responses)}")
        print(f"   (attempt {request.attempts}/{request.max_attempts})")
        return

    routing = result.routing_result
    if routing is not None:
        print(f"\n➡️  {routing.target_agent.value} (confidence {routing.confidence:.2f})")
        print(f"   {routing.reasoning}")
        entities = routing.extracted_entities.to_dict()
        if entities:
            print(f"   Entities: {json.dumps(entities, ensure_ascii=False)}")
        if routing.suggested_actions:
            print(f"   Next: {', '.join(routing.suggested_actions)}")


async def handle_command(app: PantryApp, command: str, conversation_id: str) -> str:
    """
    Run a slash command.

    Returns:
        The conversation id to continue with
    """
    name, _, argument = command.partition(" ")
    manager = app.manager

    if name == "/stats":
        stats = await manager.get_conversation_stats()
        print(json.dumps(stats, indent=2, ensure_ascii=False))
    elif name == "/clear":
        await manager.clear_conversation_context(conversation_id)
        conversation_id = f"cli-{generate_request_id()}"
        print(f"🧹 New conversation: {conversation_id}")
    elif name == "/cancel":
        cancelled = await manager.cancel_clarification_request(conversation_id)
        print("✅ Clarification cancelled" if cancelled else "Nothing pending")
    elif name == "/lang":
        language = argument.strip()
        if await manager.set_preferred_language(conversation_id, language, user_id="cli"):
            print(f"🌐 Response language: {language}")
        else:
            print(f"Unsupported language. Choose from: {', '.join(manager.get_supported_languages())}")
    else:
        print(f"Unknown command: {name}")
    return conversation_id


async def interactive_main(verbose: bool = False):
    """
    Interactive mode for the conversation manager.

    Args:
        verbose: If True, print full results as JSON
    """
    app = create_app()
    conversation_id = f"cli-{generate_request_id()}"

    print_banner()
    if not verbose:
        print("\n💡 Tip: Use --verbose flag to see the full result")

    try:
        while True:
            try:
                sentence = input("\n💬 You: ").strip()
            except (KeyboardInterrupt, EOFError):
                print("\n\n👋 Goodbye!")
                break

            if not sentence or sentence.lower() in EXIT_COMMANDS:
                print("\n👋 Goodbye!")
                break

            if sentence.startswith("/"):
                conversation_id = await handle_command(app, sentence, conversation_id)
                continue

            result = await app.manager.process(sentence, conversation_id, user_id="cli")
            log_with_context(
                logger, logging.DEBUG, "CLI turn processed",
                request_id=generate_request_id(),
                conversation_id=conversation_id,
                target_agent=result.target_agent,
                processing_time_ms=result.processing_time_ms,
            )
            print_result(result, verbose=verbose)
    finally:
        await app.shutdown()


def main():
    """Entry point for the interactive CLI."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Pantry Assistant - Interactive Mode",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Print the full result as JSON (default: short summary)'
    )

    args = parser.parse_args()

    try:
        asyncio.run(interactive_main(verbose=args.verbose))
    except KeyboardInterrupt:
        print("\n\n👋 Goodbye!")
    except Exception as e:
        print(f"\n❌ Fatal error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
