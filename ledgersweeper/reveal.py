"""Reveal engine: single reveals, flood fill, batches, flags and chords.

Every operation takes a Board snapshot and returns a Board. When nothing is
eligible to change, the input board itself is returned.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Set, Tuple

from ledgersweeper.board import NEIGHBOR_OFFSETS, copy_board, get_cell, in_bounds, neighbors
from ledgersweeper.types import Board, Cell, CellState, RevealBatch


def _now(now: Optional[datetime]) -> datetime:
    return now if now is not None else datetime.now(timezone.utc)


def _open(cell: Cell, adjacent_mines: int, now: datetime) -> None:
    cell.state = CellState.OPEN
    cell.adjacent_mines = adjacent_mines
    cell.revealed_at = now


def reveal_one(board: Board, x: int, y: int, now: Optional[datetime] = None) -> Board:
    """Open a single closed cell without cascading."""
    if get_cell(board, x, y).state != CellState.CLOSED:
        return board

    new_board = copy_board(board)
    cell = new_board.cells[y][x]
    cell.state = CellState.OPEN
    cell.revealed_at = _now(now)
    return new_board


def flood_fill(board: Board, x: int, y: int) -> RevealBatch:
    """Collect the cells a click at (x, y) exposes, without touching the board.

    Depth-first pre-order over closed, non-mine cells; only zero cells expand
    into their neighbors. An explicit stack replaces recursion, pushing
    neighbors in reverse so they pop in NEIGHBOR_OFFSETS order and the batch
    matches what a recursive walk would produce.
    """
    get_cell(board, x, y)
    batch = RevealBatch(width=board.width)
    visited: Set[Tuple[int, int]] = set()
    stack: List[Tuple[int, int]] = [(x, y)]

    while stack:
        cx, cy = stack.pop()
        if not in_bounds(board, cx, cy) or (cx, cy) in visited:
            continue
        cell = board.cells[cy][cx]
        if cell.state != CellState.CLOSED or cell.is_mine:
            continue

        visited.add((cx, cy))
        batch.append(cx, cy, cell.adjacent_mines)

        if cell.adjacent_mines == 0:
            for dx, dy in reversed(NEIGHBOR_OFFSETS):
                stack.append((cx + dx, cy + dy))

    return batch


def _apply_in_place(board: Board, batch: RevealBatch, now: datetime) -> bool:
    changed = False
    for entry in batch.cells:
        cell = get_cell(board, entry.x, entry.y)
        if cell.state == CellState.CLOSED:
            _open(cell, entry.adjacent_mines, now)
            changed = True
    return changed


def apply_reveal_batch(board: Board, batch: RevealBatch, now: Optional[datetime] = None) -> Board:
    """Open every still-closed cell of the batch; other entries are skipped."""
    new_board = copy_board(board)
    if not _apply_in_place(new_board, batch, _now(now)):
        return board
    return new_board


def toggle_flag(board: Board, x: int, y: int) -> Board:
    """Flip a cell between closed and flagged. Open cells are left alone."""
    cell = get_cell(board, x, y)
    if cell.state == CellState.OPEN:
        return board

    new_board = copy_board(board)
    new_cell = new_board.cells[y][x]
    new_cell.state = CellState.CLOSED if cell.state == CellState.FLAGGED else CellState.FLAGGED
    return new_board


def count_flagged_neighbors(board: Board, x: int, y: int) -> int:
    return sum(
        1 for nx, ny in neighbors(board, x, y)
        if board.cells[ny][nx].state == CellState.FLAGGED
    )


def can_chord(board: Board, x: int, y: int) -> bool:
    """An open number whose flagged neighbors match it exactly."""
    cell = get_cell(board, x, y)
    if cell.state != CellState.OPEN or cell.is_mine or cell.adjacent_mines == 0:
        return False
    return count_flagged_neighbors(board, x, y) == cell.adjacent_mines


@dataclass
class ChordResult:
    """Outcome of a chord: the new board, safe cells opened and the mine hit, if any."""
    board: Board
    batch: RevealBatch
    mine: Optional[Tuple[int, int]] = None


def chord_reveal_batch(board: Board, x: int, y: int, now: Optional[datetime] = None) -> ChordResult:
    """Open every closed neighbor of an eligible number cell.

    Neighbors are processed in NEIGHBOR_OFFSETS order. The first mine opened
    stops the chord and is returned; cells opened before it stay open.
    """
    if not can_chord(board, x, y):
        return ChordResult(board=board, batch=RevealBatch(width=board.width))

    stamp = _now(now)
    new_board = copy_board(board)
    batch = RevealBatch(width=board.width)

    for nx, ny in neighbors(new_board, x, y):
        neighbor = new_board.cells[ny][nx]
        if neighbor.state != CellState.CLOSED:
            continue

        if neighbor.is_mine:
            neighbor.state = CellState.OPEN
            neighbor.revealed_at = stamp
            return ChordResult(board=new_board, batch=batch, mine=(nx, ny))

        if neighbor.adjacent_mines == 0:
            cascade = flood_fill(new_board, nx, ny)
            _apply_in_place(new_board, cascade, stamp)
            batch.extend(cascade)
        else:
            _open(neighbor, neighbor.adjacent_mines, stamp)
            batch.append(nx, ny, neighbor.adjacent_mines)

    if not batch.cells:
        return ChordResult(board=board, batch=batch)
    return ChordResult(board=new_board, batch=batch)


def chord_reveal(board: Board, x: int, y: int, now: Optional[datetime] = None) -> Board:
    return chord_reveal_batch(board, x, y, now).board
