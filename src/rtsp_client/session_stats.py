#!/usr/bin/env python3
"""
Session Statistics

Tracks playback statistics for every RTSP session on a connection:
- Frame counters (played, out-of-order, optionally lost)
- Playback time, accrued by a periodic tick while playing
- Control request totals

Out-of-order detection keeps the last few sequence numbers and
timestamps in ring buffers. Both buffers are recreated for each session,
so nothing from a previous session influences the next one.

Finished sessions are frozen and appended to a history list; only the
current session is ever mutated.
"""

import time
import threading
import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from .frame import Frame
from .periodic import PeriodicTask
from .ring_buffer import RingBuffer
from .version import utc_now, utc_isoformat

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_SIZE = 10
DEFAULT_ACCRUAL_INTERVAL_MS = 20
# Largest forward timestamp jump never flagged as out of order
DEFAULT_MAX_TIMESTAMP_GAP = 0x7FFFFFFF

SEQUENCE_MASK = 0xFFFF
TIMESTAMP_MASK = 0xFFFFFFFF
TIMESTAMP_HALF_RANGE = 0x80000000


@dataclass
class SessionStat:
    """Live counters for the current session"""
    session_id: str
    media_name: str
    start_time: datetime
    end_time: Optional[datetime] = None
    request_count: int = 0
    frames_played: int = 0
    frames_lost: int = 0
    frames_out_of_order: int = 0
    playback_elapsed_ms: float = 0.0

    def freeze(self) -> 'SessionRecord':
        return SessionRecord(**asdict(self))


@dataclass(frozen=True)
class SessionRecord:
    """
    Immutable copy of a session's counters.

    end_session() stores one per finished session; current_session() returns
    one for the open session, with end_time still None.
    """
    session_id: str
    media_name: str
    start_time: datetime
    end_time: Optional[datetime]
    request_count: int
    frames_played: int
    frames_lost: int
    frames_out_of_order: int
    playback_elapsed_ms: float


@dataclass(frozen=True)
class SessionReport:
    """Summary of one finished session"""
    session_id: str
    media_name: str
    start_time: datetime
    end_time: Optional[datetime]
    request_count: int
    frames_played: int
    frames_out_of_order: int
    frames_lost: int
    playback_seconds: float
    session_seconds: float
    frame_rate: float

    @classmethod
    def from_session(cls, session: SessionRecord) -> 'SessionReport':
        playback_seconds = session.playback_elapsed_ms / 1000.0
        if session.end_time is not None:
            session_seconds = max(0.0, (session.end_time - session.start_time).total_seconds())
        else:
            session_seconds = 0.0
        frame_rate = session.frames_played / playback_seconds if playback_seconds > 0 else 0.0
        return cls(
            session_id=session.session_id,
            media_name=session.media_name,
            start_time=session.start_time,
            end_time=session.end_time,
            request_count=session.request_count,
            frames_played=session.frames_played,
            frames_out_of_order=session.frames_out_of_order,
            frames_lost=session.frames_lost,
            playback_seconds=playback_seconds,
            session_seconds=session_seconds,
            frame_rate=frame_rate,
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def timestamp_is_behind(previous: int, current: int,
                        max_gap: int = DEFAULT_MAX_TIMESTAMP_GAP) -> bool:
    """
    True if `current` should have been presented before `previous`.

    Uses 32-bit serial arithmetic: `current` is behind when the backward
    distance from previous to current, taken modulo 2^32, is non-zero and
    no more than half the timestamp range. max_gap is the largest forward
    jump accepted as legitimate; it can only widen the accepted window
    beyond half the range, never narrow it.
    """
    backward = (previous - current) & TIMESTAMP_MASK
    if backward == 0 or backward > TIMESTAMP_HALF_RANGE:
        return False
    forward = TIMESTAMP_HALF_RANGE * 2 - backward
    return forward > max_gap


def sequence_gap(previous: int, current: int) -> int:
    """Number of sequence numbers skipped between two frames (0 if none or backwards)"""
    forward = (current - previous) & SEQUENCE_MASK
    if 1 < forward < 0x8000:
        return forward - 1
    return 0


class SessionStatistics:
    """
    Playback statistics for an entire connection, organized by session.

    begin_session() must be called before any other per-session method;
    RTSPConnection does this on every successful SETUP.

    Example:
        stats = SessionStatistics()
        stats.begin_session("1234", "movie.mov")
        stats.begin_playback()
        stats.record_frame(frame)
        stats.pause_playback()
        stats.end_session()
        print(stats.format_report())
    """

    def __init__(self,
                 history_size: int = DEFAULT_HISTORY_SIZE,
                 accrual_interval_ms: int = DEFAULT_ACCRUAL_INTERVAL_MS,
                 max_timestamp_gap: int = DEFAULT_MAX_TIMESTAMP_GAP,
                 detect_loss: bool = False):
        self.history_size = history_size
        self.accrual_interval_ms = accrual_interval_ms
        self.max_timestamp_gap = max_timestamp_gap
        self.detect_loss = detect_loss

        self.sessions: List[SessionRecord] = []
        self._current: Optional[SessionStat] = None
        self._recent_seqs: Optional[RingBuffer] = None
        self._recent_timestamps: Optional[RingBuffer] = None

        self._accrual_task: Optional[PeriodicTask] = None
        self._accrual_mark: Optional[float] = None

        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    def begin_session(self, session_id: str, media_name: str) -> None:
        """
        Start tracking a new session.

        Args:
            session_id: Identifier assigned by the server at SETUP
            media_name: Media resource requested for this session
        """
        if self._current is not None:
            logger.warning(f"Session {self._current.session_id} was never ended, finalizing it now")
            self.end_session()

        with self._lock:
            self._current = SessionStat(
                session_id=session_id,
                media_name=media_name,
                start_time=utc_now(),
            )
            self._recent_seqs = RingBuffer(self.history_size, dtype=np.uint16)
            self._recent_timestamps = RingBuffer(self.history_size, dtype=np.uint32)

        logger.info(f"Session {session_id} started for '{media_name}'")

    def end_session(self) -> Optional[SessionRecord]:
        """
        Finalize the current session: stop accrual, stamp the end time and
        move it to the history.

        Returns:
            The finalized record, or None if no session was open
        """
        self.pause_playback()

        with self._lock:
            if self._current is None:
                return None
            self._current.end_time = utc_now()
            finished = self._current.freeze()
            self.sessions.append(finished)
            self._current = None
            self._recent_seqs = None
            self._recent_timestamps = None

        logger.info(
            f"Session {finished.session_id} ended: {finished.frames_played} frames, "
            f"{finished.frames_out_of_order} out of order, "
            f"{finished.playback_elapsed_ms / 1000:.1f}s played"
        )
        return finished

    def set_request_count(self, count: int) -> None:
        with self._lock:
            self._latest().request_count = count

    # ------------------------------------------------------------------
    # Playback accrual
    # ------------------------------------------------------------------

    def begin_playback(self) -> None:
        """Start adding elapsed time to the current session"""
        with self._lock:
            self._latest()
            if self._accrual_task is not None:
                return
            self._accrual_mark = time.monotonic()
            self._accrual_task = PeriodicTask(
                name="playback-accrual",
                func=self._accrue,
                interval_s=self.accrual_interval_ms / 1000.0,
            )
            self._accrual_task.start()

    def pause_playback(self) -> None:
        """Stop accrual, crediting the time since the last tick"""
        with self._lock:
            task = self._accrual_task
            self._accrual_task = None
        if task is None:
            return

        # Join outside the lock; the tick itself takes it
        task.cancel()
        self._accrue()
        with self._lock:
            self._accrual_mark = None

    @property
    def playing(self) -> bool:
        return self._accrual_task is not None

    def _accrue(self):
        with self._lock:
            if self._current is None or self._accrual_mark is None:
                return
            now = time.monotonic()
            self._current.playback_elapsed_ms += (now - self._accrual_mark) * 1000.0
            self._accrual_mark = now

    # ------------------------------------------------------------------
    # Frames
    # ------------------------------------------------------------------

    def record_frame(self, frame: Frame) -> bool:
        """
        Record a newly processed frame against the current session.

        Args:
            frame: The frame just delivered to the consumer

        Returns:
            True if the frame was flagged out of order
        """
        with self._lock:
            if self._current is None:
                logger.warning(f"Frame seq={frame.sequence_number} arrived with no open session, ignoring")
                return False

            session = self._current
            session.frames_played += 1

            self._recent_seqs.push(frame.sequence_number & SEQUENCE_MASK)
            self._recent_timestamps.push(frame.timestamp & TIMESTAMP_MASK)

            if self.detect_loss:
                seqs = self._recent_seqs.snapshot()
                if len(seqs) >= 2:
                    lost = sequence_gap(seqs[-2], seqs[-1])
                    if lost:
                        session.frames_lost += lost
                        logger.debug(f"Sequence gap {seqs[-2]} -> {seqs[-1]}: {lost} frames lost")

            out_of_order = False
            timestamps = self._recent_timestamps.snapshot()
            if len(timestamps) >= 2:
                out_of_order = timestamp_is_behind(timestamps[-2], timestamps[-1], self.max_timestamp_gap)
                if out_of_order:
                    session.frames_out_of_order += 1
                    logger.debug(
                        f"Out-of-order frame seq={frame.sequence_number}: "
                        f"ts {timestamps[-1]} after {timestamps[-2]}"
                    )

            if session.frames_played % 500 == 0:
                logger.debug(f"Session {session.session_id}: {session.frames_played} frames played")

            return out_of_order

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def current_session(self) -> Optional[SessionRecord]:
        """Read-only snapshot of the open session (end_time unset)"""
        with self._lock:
            if self._current is None:
                return None
            return self._current.freeze()

    def recent_timestamps(self) -> List[int]:
        with self._lock:
            return self._recent_timestamps.snapshot() if self._recent_timestamps else []

    def recent_sequence_numbers(self) -> List[int]:
        with self._lock:
            return self._recent_seqs.snapshot() if self._recent_seqs else []

    def report(self) -> List[SessionReport]:
        """Summaries of every finished session, oldest first"""
        with self._lock:
            finished = list(self.sessions)
        return [SessionReport.from_session(s) for s in finished]

    def to_dataframe(self) -> pd.DataFrame:
        """Finished sessions as a table, one row per session"""
        rows = [r.to_dict() for r in self.report()]
        columns = [
            'session_id', 'media_name', 'start_time', 'end_time', 'request_count',
            'frames_played', 'frames_out_of_order', 'frames_lost',
            'playback_seconds', 'session_seconds', 'frame_rate',
        ]
        return pd.DataFrame(rows, columns=columns)

    def format_report(self) -> str:
        """Human-readable summary of all finished sessions"""
        reports = self.report()
        if not reports:
            return "No completed sessions."

        lines = [f"{len(reports)} completed session(s)"]
        for i, r in enumerate(reports, start=1):
            lines.append(f"Session {i}: id={r.session_id} media='{r.media_name}'")
            lines.append(f"  started:          {utc_isoformat(r.start_time)}")
            if r.end_time is not None:
                lines.append(f"  ended:            {utc_isoformat(r.end_time)}")
            lines.append(f"  requests sent:    {r.request_count}")
            lines.append(f"  frames played:    {r.frames_played}")
            lines.append(f"  out of order:     {r.frames_out_of_order}")
            lines.append(f"  frames lost:      {r.frames_lost}")
            lines.append(f"  playback time:    {r.playback_seconds:.2f}s")
            lines.append(f"  session duration: {r.session_seconds:.2f}s")
            lines.append(f"  average rate:     {r.frame_rate:.2f} fps")
        return "\n".join(lines)

    def _latest(self) -> SessionStat:
        if self._current is None:
            raise RuntimeError("no session in progress; call begin_session() first")
        return self._current
