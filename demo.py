#!/usr/bin/env python3
"""
Demo script for the Task Orchestrator.

Runs one autonomous session from the command line, without the API server:
the goal is broken into tasks, each task is analyzed, executed and used to
create follow-up tasks until the queue empties or the loop budget runs out.

Usage:
    python demo.py "Plan a weekend trip to Lisbon"
    python demo.py --mock "Write a market summary for electric bikes"
    python demo.py --max-loops 8 --language French "Explain the Krebs cycle"
"""

import argparse
import asyncio
import logging
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(Path(__file__).parent / ".env")

ICONS = {
    "goal": "🎯",
    "task": "📋",
    "action": "🧭",
    "result": "✅",
    "system": "ℹ️ ",
}


def print_message(message) -> None:
    icon = ICONS.get(message.type.value, "•")
    if message.type.value == "action":
        print(f"\n{icon} Action [{message.info}]: {message.value}")
    elif message.type.value == "result":
        print(f"{icon} Result for '{message.info}':\n")
        print(message.value)
        print("-" * 60)
    elif message.type.value == "task":
        print(f"   {icon} Added task: {message.value}")
    else:
        print(f"\n{icon} {message.value}")


async def run_demo(goal: str, use_mock: bool = False, max_loops: int = None, language: str = None):
    """Run a full agent session for the goal."""
    from config import config
    from agents.agent_service import create_agent_service
    from agents.session import AgentSession
    from core.types import ModelSettings

    print("\n" + "=" * 60)
    print("🤖 AUTONOMOUS TASK ORCHESTRATOR DEMO")
    print("=" * 60)

    if not use_mock and not config.validate():
        print("ℹ️  No API key found, using mock mode\n")
        use_mock = True

    settings = ModelSettings.from_config(config)
    service = create_agent_service(mock_mode=use_mock)
    session = AgentSession(
        service=service,
        settings=settings,
        goal=goal,
        max_loops=max_loops or config.max_loops,
        language=language,
        on_message=print_message,
    )

    start_time = datetime.now()
    await session.run()
    elapsed = (datetime.now() - start_time).total_seconds()

    print("\n" + "=" * 60)
    print(f"Session {session.status.value} after {session.loop_count} loop(s) in {elapsed:.1f}s")
    print("=" * 60 + "\n")
    return session


def main():
    parser = argparse.ArgumentParser(description="Autonomous Task Orchestrator Demo")
    parser.add_argument("goal", nargs="?", default="Write a short report on the history of the bicycle",
                        help="Goal for the agent")
    parser.add_argument("--mock", action="store_true", help="Use canned outputs (no API key needed)")
    parser.add_argument("--max-loops", type=int, default=None, help="Loop budget for the session")
    parser.add_argument("--language", default=None, help="Language for the answers")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    args = parser.parse_args()

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    asyncio.run(run_demo(args.goal, args.mock, args.max_loops, args.language))


if __name__ == "__main__":
    main()
