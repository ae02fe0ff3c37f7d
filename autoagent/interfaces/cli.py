"""Command-line entrypoint: run one autonomous agent until SIGINT/SIGTERM."""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path

import structlog
from dotenv import load_dotenv

from autoagent.agent.lifecycle import AutonomousAgent
from autoagent.exceptions import ConfigError
from autoagent.utils.config import load_config
from autoagent.utils.logging import get_logger, setup_logging
from autoagent.utils.monitoring import start_metrics_server

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autoagent",
        description="Run a budget-aware autonomous agent.",
        epilog="Example: autoagent claude-desktop-agent",
    )
    parser.add_argument("agent_id", metavar="agent-id", help="Identifier of this agent (non-empty)")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Path to agent_config.yaml (default: config/agent_config.yaml)")
    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse argv; exits with usage on stderr when the agent id is missing or empty."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.agent_id.strip():
        parser.error("agent-id must be a non-empty string")
    return args


async def run_agent(agent_id: str, config_path: Path | None = None) -> None:
    """Start the agent and block until an interrupt/terminate signal arrives."""
    # tag every log line, including those from tasks started below
    structlog.contextvars.bind_contextvars(agent_id=agent_id)
    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    data_dir = Path(config.get("agent", {}).get("data_dir", "./data"))
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        json_logs=bool(log_cfg.get("json", False)),
        log_file=data_dir / f"{agent_id}-autonomous.log",
    )
    metrics_cfg = config.get("metrics", {})
    if metrics_cfg.get("enabled"):
        start_metrics_server(int(metrics_cfg.get("port", 9090)))

    agent = AutonomousAgent.from_config(agent_id, config)
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:
            # Windows event loops have no signal handler support
            pass

    await agent.start()
    logger.info("agent_running", agent_id=agent_id, log_file=str(agent.log_file))
    try:
        await shutdown.wait()
        logger.info("shutdown_signal_received", agent_id=agent_id)
    finally:
        await agent.stop()
        await agent.backend.close()


def run_cli(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    try:
        asyncio.run(run_agent(args.agent_id, args.config))
    except ConfigError as e:
        print(f"autoagent: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        pass
    return 0


def main() -> None:
    sys.exit(run_cli())


if __name__ == "__main__":
    main()
