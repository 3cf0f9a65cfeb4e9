"""Temporal activities that verify what the ledger is asked to record."""
from temporalio import activity
from typing import Set

from ledgersweeper.types import (
    BatchSubmission,
    LedgerState,
    LedgerStatus,
    SubmissionVerdict,
)


def _reject(reason: str) -> SubmissionVerdict:
    activity.logger.warning(f"Rejected reveal batch: {reason}")
    return SubmissionVerdict(accepted=False, reason=reason)


@activity.defn
async def verify_reveal_batch(ledger: LedgerState, submission: BatchSubmission) -> SubmissionVerdict:
    """Check a reveal batch against the game's dimensions and prior records."""
    if ledger.status != LedgerStatus.OPEN:
        return _reject(f"game is {ledger.status.value}")

    indices, counts = submission.cell_indices, submission.adjacent_mines
    if len(indices) != len(counts):
        return _reject(f"{len(indices)} cell indices but {len(counts)} adjacency counts")
    if not indices:
        return _reject("empty batch")

    config = ledger.config
    total_cells = config.width * config.height
    seen: Set[int] = set(ledger.revealed_indices)

    for index, count in zip(indices, counts):
        if not 0 <= index < total_cells:
            return _reject(f"cell index {index} outside a board of {total_cells} cells")
        if not 0 <= count <= 8:
            return _reject(f"adjacency count {count} for cell {index}")
        if index in seen:
            return _reject(f"cell {index} was already revealed")
        seen.add(index)

    if len(seen) > total_cells - config.mine_count:
        return _reject("more cells revealed than the board has safe cells")

    return SubmissionVerdict(accepted=True)


@activity.defn
async def settle_win_claim(ledger: LedgerState) -> LedgerStatus:
    """Confirm a win when every safe cell has been recorded as revealed."""
    if ledger.status != LedgerStatus.OPEN:
        return ledger.status

    config = ledger.config
    safe_cells = config.width * config.height - config.mine_count
    revealed = len(set(ledger.revealed_indices))

    if revealed == safe_cells:
        activity.logger.info(f"Win confirmed for ledger game {ledger.game_id}")
        return LedgerStatus.WIN_CONFIRMED

    activity.logger.warning(
        f"Win claim for {ledger.game_id} rejected: {revealed} of {safe_cells} safe cells recorded"
    )
    return LedgerStatus.WIN_REJECTED
