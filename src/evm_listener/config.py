"""Configuration loading: TOML file + environment variables."""

from __future__ import annotations

import importlib
import os
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from evm_listener.errors import MissingConfiguration
from evm_listener.interfaces.handler import Handler
from evm_listener.models.config import (
    DEFAULT_STEP,
    ChainConfig,
    ContractConfig,
    IngestionMode,
    ListenerConfig,
)


def load_config(
    config_path: str | Path | None = None,
    env_prefix: str = "EVM_LISTENER_",
) -> ListenerConfig:
    """Load listener configuration from a TOML file and env vars.

    Priority (highest wins):
        1. Environment variables (EVM_LISTENER_RPC_URL, etc.)
        2. TOML config file
        3. Defaults from ListenerConfig

    Relative `abi_path` entries are resolved against the config file's
    directory.
    """
    raw: dict = {}
    base_dir = Path.cwd()
    if config_path is not None:
        p = Path(config_path).expanduser()
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)
            base_dir = p.resolve().parent

    cfg = ListenerConfig()

    # ── Listener section ───────────────────────────────────
    listener = raw.get("listener", {})
    if (v := listener.get("poll_interval")) is not None:
        cfg.poll_interval = float(v)
    if v := listener.get("log_level"):
        cfg.log_level = str(v)

    # ── Chain section ──────────────────────────────────────
    chain = raw.get("chain", {})
    cfg.chain = ChainConfig(
        chain_id=int(chain.get("chain_id", 1)),
        name=str(chain.get("name", "ethereum")),
        rpc_url=str(chain.get("rpc_url", "")),
        ws_url=str(chain.get("ws_url", "")),
        timeout=int(chain.get("timeout", 20)),
    )

    # ── Storage section ────────────────────────────────────
    storage = raw.get("storage", {})
    if v := storage.get("db_path"):
        cfg.db_path = str(v)

    # ── Contracts ──────────────────────────────────────────
    for i, entry in enumerate(raw.get("contracts", [])):
        cfg.contracts.append(_contract_config(entry, i, base_dir))

    # ── Environment variable overrides (highest priority) ──
    if rpc := os.environ.get(f"{env_prefix}RPC_URL"):
        cfg.chain.rpc_url = rpc
    if ws := os.environ.get(f"{env_prefix}WS_URL"):
        cfg.chain.ws_url = ws
    if db := os.environ.get(f"{env_prefix}DB_PATH"):
        cfg.db_path = db
    if level := os.environ.get(f"{env_prefix}LOG_LEVEL"):
        cfg.log_level = level
    if interval := os.environ.get(f"{env_prefix}POLL_INTERVAL"):
        cfg.poll_interval = float(interval)

    # Expand ~ in paths
    if cfg.db_path:
        cfg.db_path = str(Path(cfg.db_path).expanduser())

    return cfg


def _contract_config(entry: dict, index: int, base_dir: Path) -> ContractConfig:
    address = entry.get("address")
    abi_path = entry.get("abi_path")
    if not address or not abi_path:
        raise MissingConfiguration(f"contracts[{index}]: 'address' and 'abi_path' are required")

    abi = Path(abi_path).expanduser()
    if not abi.is_absolute():
        abi = base_dir / abi

    end_block = entry.get("end_block")
    return ContractConfig(
        address=str(address),
        abi_path=str(abi),
        name=str(entry.get("name", "")),
        start_block=int(entry.get("start_block", 0)),
        end_block=int(end_block) if end_block is not None else None,
        step=int(entry.get("step", DEFAULT_STEP)),
        mode=IngestionMode(entry.get("mode", IngestionMode.POLLING.value)),
        handlers=[str(h) for h in entry.get("handlers", [])],
    )


def load_handler(path: str) -> Handler:
    """Import a handler from a ``"package.module:attribute"`` path."""
    module_name, _, attr = path.partition(":")
    if not module_name or not attr:
        raise MissingConfiguration(f"handler {path!r} must look like 'module:attribute'")
    try:
        module = importlib.import_module(module_name)
        handler = getattr(module, attr)
    except (ImportError, AttributeError) as exc:
        raise MissingConfiguration(f"cannot load handler {path!r}: {exc}") from exc
    if not callable(handler):
        raise MissingConfiguration(f"handler {path!r} is not callable")
    return handler
