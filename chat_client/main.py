"""
Console runner for the realtime session client.
Reads lines from stdin, sends them, and prints echoes with their analytics.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional
from dotenv import load_dotenv

from chat_client.core.config import ClientSettings, get_settings
from chat_client.core.errors import GatewayError
from chat_client.models import ChatMessage, MessageOrigin, SessionSnapshot, SessionStatistics
from chat_client.orchestration import SessionOrchestrator, OrchestratorStatus

logger = logging.getLogger(__name__)

QUIT_COMMANDS = {"/quit", "/exit"}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Realtime message analytics client")
    parser.add_argument("--ws-url", help="Realtime endpoint (overrides CHAT_CLIENT_WS_URL)")
    parser.add_argument("--api-url", help="REST base URL (overrides CHAT_CLIENT_API_BASE_URL)")
    parser.add_argument("--log-level", help="Logging level, e.g. DEBUG")
    return parser.parse_args(argv)


def build_settings(args: argparse.Namespace, base: Optional[ClientSettings] = None) -> ClientSettings:
    """Apply command line overrides on top of the loaded settings."""
    overrides = {}
    if args.ws_url:
        overrides["ws_url"] = args.ws_url
    if args.api_url:
        overrides["api_base_url"] = args.api_url
    if args.log_level:
        overrides["log_level"] = args.log_level.upper()
    return (base or get_settings()).model_copy(update=overrides)


def render_message(message: ChatMessage) -> str:
    if message.origin == MessageOrigin.USER or message.analytics is None:
        return f"> {message.content}"
    a = message.analytics
    question = " ?" if a.is_question else ""
    return (
        f"< {message.content}  [{a.word_count} words, {a.char_count} chars, "
        f"{a.sentence_count} sentences, {a.sentiment}{question}]"
    )


def render_statistics(stats: SessionStatistics) -> str:
    breakdown = stats.sentiment_breakdown
    return (
        f"messages={stats.total_messages} words={stats.total_words} "
        f"questions={stats.questions_asked} ({stats.question_rate:.0%}) "
        f"avg_length={stats.avg_message_length:.1f} "
        f"sentiment=+{breakdown.positive}/-{breakdown.negative}/={breakdown.neutral} "
        f"dominant={stats.dominant_sentiment}"
    )


async def _read_line() -> Optional[str]:
    line = await asyncio.to_thread(sys.stdin.readline)
    return line.rstrip("\n") if line else None


async def run(settings: ClientSettings) -> int:
    orchestrator = SessionOrchestrator(settings)
    printed = 0

    def on_snapshot(snapshot: SessionSnapshot):
        nonlocal printed
        for message in snapshot.messages[printed:]:
            if message.origin == MessageOrigin.SYSTEM:
                print(render_message(message))
        printed = len(snapshot.messages)

    def on_status(status: OrchestratorStatus):
        print(f"[{status.bootstrap_state.value} / {status.connection_state.value}]")

    orchestrator.subscribe(on_snapshot)
    orchestrator.on_status_change(on_status)

    try:
        while not await orchestrator.start():
            print(f"Backend unavailable ({orchestrator.bootstrap_error.message}). "
                  f"Press Enter to retry or type /quit.")
            line = await _read_line()
            if line is None or line.strip() in QUIT_COMMANDS:
                return 1

        if orchestrator.bootstrap_error is not None:
            print(f"Warning: {orchestrator.bootstrap_error.message}")
        session = orchestrator.session_identity
        print(f"Session: {session.id if session else 'none'}. Type /stats, /history or /quit.")

        while True:
            line = await _read_line()
            if line is None or line.strip() in QUIT_COMMANDS:
                return 0
            command = line.strip()
            if command == "/stats":
                print(render_statistics(orchestrator.snapshot.statistics))
            elif command == "/history":
                try:
                    history = await orchestrator.fetch_history()
                except GatewayError as e:
                    print(f"! history unavailable ({e.message})")
                    continue
                for record in history:
                    print(f"  {record.timestamp:%H:%M} {record.content}")
            else:
                error = await orchestrator.send_user_message(line)
                if error is not None:
                    print(f"! not sent ({error.value})")
    finally:
        await orchestrator.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    settings = build_settings(args)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler()]
    )
    logger.info(f"Starting session client against {settings.ws_url}")

    try:
        return asyncio.run(run(settings))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
