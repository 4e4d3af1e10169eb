"""
Console runner for the onboarding flow.

Usage:
    python -m voice_engine [--screen language]

Utterances are printed; each typed line is one spoken answer. The run
ends when the flow leaves onboarding (settings or chapters).
"""
import argparse
import asyncio
import os
import sys

from logging_setup import setup_logging, get_logger, Component
from .capabilities import ConsoleSpeechToText, ConsoleTextToSpeech
from .config import get_config
from .engine import screen_for_route, shutdown_engine, start_engine

logger = get_logger(Component.ENGINE)

# Routes that leave the onboarding flow
EXIT_SCREENS = ("settings", "chapters")


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="python -m voice_engine", description=__doc__.splitlines()[1])
    parser.add_argument("--screen", default=None, help="screen to start on (default: from preferences)")
    parser.add_argument("--log-level", default="WARNING")
    return parser.parse_args(argv)


async def run(args) -> str:
    finished = asyncio.Event()
    engine = None

    def navigate(route: str) -> None:
        screen = screen_for_route(route)
        engine.show(screen)
        if screen in EXIT_SCREENS:
            finished.set()

    engine = start_engine(ConsoleTextToSpeech(), ConsoleSpeechToText(), config=get_config(), navigate=navigate)
    logger.info("Console runner started", screen=args.screen)
    engine.show(args.screen or engine.initial_screen())

    try:
        await finished.wait()
    finally:
        final_screen = engine.screen
        shutdown_engine()
    return final_screen


def main(argv=None) -> int:
    args = _parse_args(argv)
    # Keep the terminal readable: events go to the in-memory store only
    os.environ.setdefault("VOICE_ENGINE_EVENTS_STDOUT", "0")
    setup_logging(level=args.log_level, use_json=True)

    try:
        final_screen = asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130
    print(f"Onboarding finished on screen: {final_screen}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
