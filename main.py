#!/usr/bin/env python3
"""Main entry point for the Resonance agent server.

Bootstraps a Uvicorn ASGI server around a ChatThreadService working on
--workdir. Loads .env from --workdir if present to populate environment
variables (OPENAI_API_KEY, LOG_FORMAT, ...).
"""

import asyncio
import os
import sys
from argparse import ArgumentParser
from pathlib import Path


def main() -> None:
    parser = ArgumentParser(description="Start the Resonance agent server")
    parser.add_argument(
        "--workdir",
        required=True,
        help="Path to the workspace folder the agent works on",
    )
    parser.add_argument(
        "--log-format",
        choices=["pretty", "json"],
        help="Log format (pretty or json). Overrides config and LOG_FORMAT env var.",
    )
    parser.add_argument(
        "--log-colors",
        type=lambda x: x.lower() in ("true", "1", "yes", "on"),
        help="Enable colored logs (true/false). Overrides config and LOG_COLORS env var.",
    )
    args, _ = parser.parse_known_args()

    # Set logging env vars from CLI flags before logger import
    if args.log_format:
        os.environ["LOG_FORMAT"] = args.log_format
    if args.log_colors is not None:
        os.environ["LOG_COLORS"] = "true" if args.log_colors else "false"

    from resonance.utils.logger import get_logger, set_log_level

    startup_logger = get_logger("server.startup")

    workdir_path = Path(args.workdir).expanduser().resolve()
    if not workdir_path.is_dir():
        startup_logger.error("--workdir is not a directory", path=str(workdir_path))
        sys.exit(1)

    from dotenv import load_dotenv

    env_file = workdir_path / ".env"
    if env_file.exists():
        load_dotenv(dotenv_path=env_file, override=False)
        startup_logger.debug("Loaded .env file", path=str(env_file))

    from resonance.config import create_config_manager, get_default_config, settings

    try:
        config_dir = Path(
            os.getenv("RESONANCE_CONFIG_DIR", "~/.config/resonance")
        ).expanduser()
        config_dir.mkdir(parents=True, exist_ok=True)
        local_config = workdir_path / ".resonance" / "config.json"
        config_manager = create_config_manager(
            config_dir,
            local_config_path=local_config,
            defaults=get_default_config(),
        )
        asyncio.run(config_manager.initialize())
        settings._config_manager = config_manager
        startup_logger.info(
            "Configuration initialized",
            config_file=str(config_dir / "config.json"),
            workspace_overrides=str(local_config),
        )
    except Exception as e:
        startup_logger.error("Failed to initialize configuration", error=str(e))
        sys.exit(1)

    import uvicorn

    from resonance import __version__
    from resonance.api.app import create_app
    from resonance.chat.service import ChatThreadService
    from resonance.config.logging_config import get_logging_config
    from resonance.llm.provider import create_stream_client
    from resonance.tools.build_registry import build_registry
    from resonance.workspace import LocalWorkspace

    workspace = LocalWorkspace(workdir_path)
    registry = build_registry(workspace, terminal_timeout=settings.terminal_timeout)

    set_log_level(settings.log_level)

    def on_config_change(new_config):
        registry.set_terminal_timeout(settings.terminal_timeout)
        set_log_level(settings.log_level)

    config_manager.register_change_callback(on_config_change)

    service = ChatThreadService(
        create_stream_client(settings),
        registry,
        settings,
        workspace,
    )
    app = create_app(service)
    app.state.config_manager = config_manager

    startup_logger.info(
        "Starting Resonance server",
        version=__version__,
        server_url=f"http://{settings.server_host}:{settings.server_port}",
        workdir=str(workdir_path),
        model=settings.llm_model,
    )

    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_config=get_logging_config(
            args.log_format or settings.log_format,
            settings.log_colors if args.log_colors is None else args.log_colors,
        ),
        lifespan="on",
        timeout_graceful_shutdown=5,
    )


if __name__ == "__main__":
    main()
