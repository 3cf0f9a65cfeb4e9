"""Where the ledger's Temporal cluster lives and how to reach it."""
import os
import pathlib
import platform
from typing import Any, Dict
from temporalio.client import Client
from temporalio.envconfig import ClientConfig

DEFAULT_TASK_QUEUE = "minesweeper-ledger-task-queue"
DEFAULT_ADDRESS = "localhost:7233"
DEFAULT_NAMESPACE = "default"


def get_task_queue() -> str:
    """Queue polled by the ledger worker and targeted by the gateway."""
    return os.getenv("LEDGER_TASK_QUEUE", DEFAULT_TASK_QUEUE)


def get_connect_options() -> Dict[str, Any]:
    """Keyword arguments for Client.connect.

    A TEMPORAL_PROFILE naming an entry of temporal.toml takes precedence over
    TEMPORAL_ADDRESS and TEMPORAL_NAMESPACE. A profile is ignored when no
    config file exists.
    """
    profile_name = os.getenv("TEMPORAL_PROFILE")
    config_file_path = get_config_file_path()
    if profile_name and config_file_path.is_file():
        return ClientConfig.load_client_connect_config(
            profile=profile_name,
            config_file=str(config_file_path),
        )

    return {
        "target_host": os.getenv("TEMPORAL_ADDRESS", DEFAULT_ADDRESS),
        "namespace": os.getenv("TEMPORAL_NAMESPACE", DEFAULT_NAMESPACE),
    }


async def get_temporal_client() -> Client:
    return await Client.connect(**get_connect_options())


def get_config_file_path() -> pathlib.Path:
    """temporal.toml under the per-user config directory of this platform."""
    system = platform.system()
    if system == "Windows":
        app_data = os.getenv("AppData")
        if app_data is None:
            raise RuntimeError("AppData environment variable not set")
        config_dir = pathlib.Path(app_data)
    elif system == "Darwin":
        config_dir = pathlib.Path.home() / "Library" / "Application Support"
    else:
        config_dir = pathlib.Path(os.getenv("XDG_CONFIG_HOME") or pathlib.Path.home() / ".config")

    return config_dir / "temporalio" / "temporal.toml"
