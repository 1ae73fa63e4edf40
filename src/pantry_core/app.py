"""
Application Factory

Loads environment files, configures logging and wires the orchestration
core together: state store, agent registry, router, workflow engine and
conversation manager.

Environment files are loaded in order, later files overriding earlier ones:
``<project root>/.env``, ``src/pantry_core/.env``, ``<project root>/.env.local``.
"""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import logging

from dotenv import load_dotenv

from pantry_nlu.config import NLUConfig
from pantry_nlu.logging_config import setup_logging

from .agents.base import AgentRegistry
from .config import CoreConfig
from .conversation.manager import ConversationManager
from .routing.agent_router import AgentRouter
from .routing.models import RoutingMemory
from .state import create_state_store
from .state.models import ClarificationRequest
from .state.store import StateStore
from .state.tables import InMemoryTable, KeyValueTable, StoreBackedTable
from .workflows.engine import WorkflowEngine

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def load_environment(project_root: Path = PROJECT_ROOT) -> None:
    """Load .env files into os.environ (existing variables win over .env only)."""
    env_file = project_root / ".env"
    core_env_file = Path(__file__).resolve().parent / ".env"
    env_local_file = project_root / ".env.local"

    if env_file.exists():
        load_dotenv(env_file, override=False)
    if core_env_file.exists():
        load_dotenv(core_env_file, override=True)
    if env_local_file.exists():
        load_dotenv(env_local_file, override=True)


@dataclass
class PantryApp:
    config: CoreConfig
    nlu_config: NLUConfig
    store: StateStore
    registry: AgentRegistry
    router: AgentRouter
    engine: WorkflowEngine
    manager: ConversationManager

    async def shutdown(self) -> None:
        await self.engine.shutdown()
        await self.manager.shutdown()
        await self.store.close()
        logger.info("Pantry core stopped")


def _tables(config: CoreConfig, store: StateStore):
    """Per-conversation tables; persisted through the store when Redis is configured."""
    if not config.REDIS_URL:
        return InMemoryTable(), InMemoryTable()

    routing_memory: KeyValueTable[RoutingMemory] = StoreBackedTable(
        store, "routing",
        encode=lambda memory: memory.to_dict(),
        decode=RoutingMemory.from_dict,
        ttl=config.CONVERSATION_TTL_SECONDS,
    )
    clarifications: KeyValueTable[ClarificationRequest] = StoreBackedTable(
        store, "clarification",
        encode=lambda request: request.to_dict(),
        decode=ClarificationRequest.from_dict,
        ttl=config.CONVERSATION_TTL_SECONDS,
    )
    return routing_memory, clarifications


def create_app(
    config: Optional[CoreConfig] = None,
    nlu_config: Optional[NLUConfig] = None,
    store: Optional[StateStore] = None,
    registry: Optional[AgentRegistry] = None,
    configure_logging: bool = True,
    load_env: bool = True,
) -> PantryApp:
    """
    Build a fully wired application.

    Args:
        config: Core settings (from the environment when omitted)
        nlu_config: NLU settings (from the environment when omitted)
        store: State store (built from config when omitted)
        registry: Worker agent registry (empty when omitted)
        configure_logging: Install the JSON/pretty log handlers
        load_env: Load .env files before reading settings

    Returns:
        PantryApp
    """
    if load_env:
        load_environment()

    config = config or CoreConfig()
    nlu_config = nlu_config or NLUConfig()

    if configure_logging:
        for app_name in ("pantry_core", "pantry_nlu"):
            setup_logging(app_name, config.LOG_LEVEL, config.LOG_FORMAT, config.LOG_FILE)

    store = store if store is not None else create_state_store(config)
    registry = registry if registry is not None else AgentRegistry()
    routing_memory, clarifications = _tables(config, store)

    router = AgentRouter(config=config, memory_table=routing_memory, registry=registry)
    engine = WorkflowEngine(registry, store=store, config=config)
    manager = ConversationManager(
        router,
        store=store,
        config=config,
        nlu_config=nlu_config,
        clarification_table=clarifications,
    )

    logger.info("Pantry core started", extra={
        'backend': 'redis' if config.REDIS_URL else 'memory',
        'registered_agents': len(registry),
    })
    return PantryApp(
        config=config,
        nlu_config=nlu_config,
        store=store,
        registry=registry,
        router=router,
        engine=engine,
        manager=manager,
    )
