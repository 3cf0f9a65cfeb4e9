"""Contract between the local simulation and the external ledger.

The controller only ever calls these methods and inspects the returned
futures later; it never waits on them. Implementations own transport, retry
and ordering.
"""
from concurrent.futures import Future
from typing import List, Protocol

from ledgersweeper.types import Difficulty, GameConfig, LedgerState


class LedgerClient(Protocol):

    def request_game_creation(self, difficulty: Difficulty, config: GameConfig) -> "Future[str]":
        """Resolves to the remote game id, or raises if creation failed."""
        ...

    def submit_reveal_batch(
        self,
        remote_game_id: str,
        cell_indices: List[int],
        adjacent_mines: List[int],
    ) -> "Future[bool]":
        """Resolves to True once the ledger has accepted the batch."""
        ...

    def submit_flag_toggle(self, remote_game_id: str, x: int, y: int) -> "Future[None]":
        ...

    def submit_win_claim(self, remote_game_id: str) -> "Future[None]":
        ...

    def close_game(self, remote_game_id: str) -> "Future[None]":
        """Tells the ledger no more intents will arrive for this game."""
        ...

    def fetch_ledger_state(self, remote_game_id: str) -> "Future[LedgerState]":
        ...
