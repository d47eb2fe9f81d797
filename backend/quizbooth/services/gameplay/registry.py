import logging
from typing import Dict, Tuple

from .feedback import SocketFeedback
from .kv import DatabaseKeyValueStore, MemoryKeyValueStore, NamespacedKeyValueStore
from .lock import CompletionLock
from .machine import SessionMachine
from .questions import DatabaseQuestionProvider
from .scheduler import BackgroundScheduler, ManualScheduler
from .store import ResultsStore, SessionStore

logger = logging.getLogger(__name__)

EXTENSION_KEY = 'quizbooth_gameplay'


class GameplayServices:
    """Per-app wiring: one backing store, scheduler and feedback shared by every machine.

    Machines are kept per (client id, game id); a client id stands in for
    one browser's storage origin.
    """

    def __init__(self, app):
        cfg = app.config
        backend = cfg.get('SESSION_STORE_BACKEND', 'database')
        if backend == 'memory':
            self.kv = MemoryKeyValueStore()
        elif backend == 'database':
            self.kv = DatabaseKeyValueStore()
        else:
            raise ValueError(f"Unknown SESSION_STORE_BACKEND: {backend}")

        if cfg.get('SESSION_SCHEDULER', 'background') == 'manual':
            self.scheduler = ManualScheduler()
        else:
            self.scheduler = BackgroundScheduler(app)

        self.feedback = SocketFeedback()
        self.questions = DatabaseQuestionProvider(int(cfg.get('QUESTION_DURATION_SEC', 30)))
        self.key_prefix = cfg.get('RECORD_KEY_PREFIX', 'quizbooth')
        self.ttl_sec = int(cfg.get('SESSION_TTL_SEC', 24 * 60 * 60))
        self.clear_delay = float(cfg.get('SESSION_CLEAR_DELAY_SEC', 5))
        self.resume_buffer = int(cfg.get('RESUME_BUFFER_SEC', 5))
        self._machines: Dict[Tuple[str, str], SessionMachine] = {}

    def client_kv(self, client_id: str) -> NamespacedKeyValueStore:
        return NamespacedKeyValueStore(self.kv, self.key_prefix, client_id)

    def completion_lock(self, client_id: str) -> CompletionLock:
        return CompletionLock(self.client_kv(client_id))

    def results_store(self, client_id: str) -> ResultsStore:
        return ResultsStore(self.client_kv(client_id))

    def machine(self, client_id: str, game_id: str) -> SessionMachine:
        key = (client_id, game_id)
        machine = self._machines.get(key)
        if machine is None:
            kv = self.client_kv(client_id)
            machine = SessionMachine(
                SessionStore(kv, ttl_sec=self.ttl_sec),
                ResultsStore(kv),
                CompletionLock(kv),
                self.questions,
                self.scheduler,
                feedback=self.feedback,
                clear_delay=self.clear_delay,
                resume_buffer=self.resume_buffer,
                on_release=lambda released: self._release(key, released),
            )
            self._machines[key] = machine
            logger.debug(f"[machine-created] client={client_id} game={game_id}")
        return machine

    def existing_machine(self, client_id: str, game_id: str):
        return self._machines.get((client_id, game_id))

    def _release(self, key: Tuple[str, str], machine: SessionMachine) -> None:
        # A newer machine may already sit under the same key
        if self._machines.get(key) is machine:
            del self._machines[key]
            logger.debug(f"[machine-released] client={key[0]} game={key[1]}")

    def machine_count(self) -> int:
        return len(self._machines)


def init_gameplay(app) -> GameplayServices:
    services = GameplayServices(app)
    app.extensions[EXTENSION_KEY] = services
    return services


def get_gameplay(app) -> GameplayServices:
    return app.extensions[EXTENSION_KEY]
