"""Application entry point for the huddle server."""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

from pydantic import ValidationError

from huddle.application.handlers.change_handlers import create_change_handler_registry
from huddle.application.services.analysis_service import AnalysisService
from huddle.application.services.fanout_router import FanOutRouter
from huddle.application.services.message_service import MessageService
from huddle.application.services.persona_service import PersonaService
from huddle.application.services.presence import TypingPresence
from huddle.application.services.rag_service import RagService
from huddle.config import (
    ConfigError,
    ConfigFileNotFoundError,
    load_config,
)
from huddle.infrastructure import InMemoryChangeBroker
from huddle.infrastructure.logging import get_logger, setup_logging
from huddle.presentation.http.realtime import RealtimeGateway
from huddle.presentation.http.server import HTTPServer
from huddle.wiring import build_components

# Shutdown timeout in seconds
SHUTDOWN_TIMEOUT = 30


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        args: Command line arguments. If None, uses sys.argv.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(description="huddle - team chat realtime and RAG service")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to configuration file (default: config.yaml)",
    )
    return parser.parse_args(args)


async def main_async(
    config_path: Path,
    shutdown_timeout: float = SHUTDOWN_TIMEOUT,
) -> int:
    """Async main function.

    Args:
        config_path: Path to configuration file.
        shutdown_timeout: Maximum time in seconds to wait for graceful shutdown.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    # 1. Load configuration
    config = load_config(config_path)

    # 2. Initialize logging
    setup_logging(config.logging)
    logger = get_logger(__name__)
    logger.info("Starting huddle", config_path=str(config_path))

    # 3. Initialize stores and providers
    components = build_components(config)
    await components.database.initialize()

    # 4. Initialize services
    broker = InMemoryChangeBroker()
    rag = RagService(
        embeddings=components.embeddings,
        index=components.index,
        llm=components.llm,
        access=components.access,
        config=config.rag,
        logger=get_logger("rag"),
    )
    analysis = AnalysisService(
        messages=components.messages,
        analyses=components.analyses,
        access=components.access,
        rag=rag,
        llm=components.llm,
        chunker=components.chunker,
        config=config.analysis,
        logger=get_logger("analysis"),
    )
    messages = MessageService(
        messages=components.messages,
        reactions=components.reactions,
        access=components.access,
        index=components.index,
        publisher=broker,
        logger=get_logger("messages"),
    )
    personas = PersonaService(
        messages=components.messages,
        membership=components.membership,
        personas=components.personas,
        llm=components.llm,
        config=config.persona,
        logger=get_logger("persona"),
    )
    router = FanOutRouter(
        stream=broker,
        handlers=create_change_handler_registry(components.reactions),
        config=config.realtime,
        logger=get_logger("fanout_router"),
    )
    gateway = RealtimeGateway(
        router=router,
        presence=TypingPresence(logger=get_logger("presence")),
        access=components.access,
        membership=components.membership,
        config=config.realtime,
        logger=get_logger("realtime"),
    )
    http_server = HTTPServer(
        config=config.server,
        rag=rag,
        analysis=analysis,
        messages=messages,
        personas=personas,
        gateway=gateway,
        logger=get_logger("http_server"),
    )

    # 5. Setup shutdown handling
    shutdown_event = asyncio.Event()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal, initiating shutdown", signal=sig.name)
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)

    try:
        # 6. Start HTTP server
        await http_server.start()
        logger.info("huddle started successfully")

        # 7. Serve until signalled
        await shutdown_event.wait()

    except asyncio.CancelledError:
        logger.info("Main loop cancelled")

    finally:
        # 8. Shutdown
        logger.info("Shutting down")
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        try:
            await asyncio.wait_for(http_server.stop(), timeout=shutdown_timeout)
            await router.close()
            broker.close()
            await components.database.close()
            logger.info("huddle stopped")
        except TimeoutError:
            logger.warning(
                "Shutdown timed out, forcing termination",
                timeout_seconds=shutdown_timeout,
            )

    return 0


def main() -> None:
    """Main entry point."""
    args = parse_args()
    config_path = args.config

    try:
        exit_code = asyncio.run(main_async(config_path))
        sys.exit(exit_code)
    except ConfigFileNotFoundError:
        print(f"Error: {config_path} not found", file=sys.stderr)
        sys.exit(1)
    except ConfigError as e:
        print(f"Error: Configuration error: {e}", file=sys.stderr)
        sys.exit(1)
    except ValidationError as e:
        print(f"Error: Configuration validation error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(0)


if __name__ == "__main__":
    main()
