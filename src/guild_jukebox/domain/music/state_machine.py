"""Playback state machine.

Transitions are looked up in a static table keyed by ``(state, event)``.
``advance`` is the only way the session state changes; it returns the
effects the caller must carry out, so transitions can be tested without
any audio, voice, or timing machinery.

    idle            + ENQUEUED        -> downloading     [start_download]
    idle            + RETRY_DUE       -> downloading     [start_download]
    downloading     + STREAM_READY    -> playing         [attach_stream]
    downloading     + DOWNLOAD_FAILED -> error_recovery  [drop_current, schedule_download_retry]
    playing         + TRACK_FINISHED  -> downloading     [delete_artifact, start_download]
    playing         + ENGINE_ERROR    -> error_recovery  [delete_artifact, drop_current,
                                                          schedule_engine_retry]
    error_recovery  + RETRY_DUE       -> downloading     [start_download]
    *               + STOPPED         -> idle            [clear_queue, release_connection]

Any other pair is ignored. ``START_DOWNLOAD`` with an empty queue is
resolved by the caller through :meth:`PlaybackStateMachine.settle_idle`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from guild_jukebox.domain.music.entities import PlaybackSession
from guild_jukebox.domain.music.value_objects import Effect, PlaybackEvent, PlaybackState
from guild_jukebox.domain.shared.messages import LogTemplates

logger = logging.getLogger(__name__)

_S = PlaybackState
_E = PlaybackEvent
_FX = Effect

TRANSITIONS: Final[dict[tuple[PlaybackState, PlaybackEvent], tuple[PlaybackState, tuple[Effect, ...]]]] = {
    (_S.IDLE, _E.ENQUEUED): (_S.DOWNLOADING, (_FX.START_DOWNLOAD,)),
    (_S.IDLE, _E.RETRY_DUE): (_S.DOWNLOADING, (_FX.START_DOWNLOAD,)),
    (_S.DOWNLOADING, _E.STREAM_READY): (_S.PLAYING, (_FX.ATTACH_STREAM,)),
    (_S.DOWNLOADING, _E.DOWNLOAD_FAILED): (
        _S.ERROR_RECOVERY,
        (_FX.DROP_CURRENT, _FX.SCHEDULE_DOWNLOAD_RETRY),
    ),
    (_S.PLAYING, _E.TRACK_FINISHED): (
        _S.DOWNLOADING,
        (_FX.DELETE_ARTIFACT, _FX.START_DOWNLOAD),
    ),
    (_S.PLAYING, _E.ENGINE_ERROR): (
        _S.ERROR_RECOVERY,
        (_FX.DELETE_ARTIFACT, _FX.DROP_CURRENT, _FX.SCHEDULE_ENGINE_RETRY),
    ),
    (_S.ERROR_RECOVERY, _E.RETRY_DUE): (_S.DOWNLOADING, (_FX.START_DOWNLOAD,)),
}

_STOP_EFFECTS: Final[tuple[Effect, ...]] = (_FX.CLEAR_QUEUE, _FX.RELEASE_CONNECTION)


@dataclass(frozen=True, slots=True)
class Transition:
    """Outcome of feeding one event to the state machine."""

    source: PlaybackState
    event: PlaybackEvent
    target: PlaybackState
    effects: tuple[Effect, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.source != self.target or bool(self.effects)


def lookup(state: PlaybackState, event: PlaybackEvent) -> tuple[PlaybackState, tuple[Effect, ...]] | None:
    """Return ``(next_state, effects)`` for a pair, or None if it is not handled."""
    if event == PlaybackEvent.STOPPED:
        return PlaybackState.IDLE, _STOP_EFFECTS
    return TRANSITIONS.get((state, event))


class PlaybackStateMachine:
    """Applies table transitions to a single :class:`PlaybackSession`."""

    def __init__(self, session: PlaybackSession) -> None:
        self._session = session

    @property
    def session(self) -> PlaybackSession:
        return self._session

    @property
    def state(self) -> PlaybackState:
        return self._session.state

    def advance(self, event: PlaybackEvent) -> Transition:
        source = self._session.state
        entry = lookup(source, event)
        if entry is None:
            logger.debug(LogTemplates.STATE_EVENT_IGNORED, self._session.guild_id, event.value, source.value)
            return Transition(source=source, event=event, target=source)

        target, effects = entry
        self._session.state = target
        self._session.downloading = target == PlaybackState.DOWNLOADING
        self._session.touch()
        logger.debug(
            LogTemplates.STATE_TRANSITION,
            self._session.guild_id,
            source.value,
            event.value,
            target.value,
        )
        return Transition(source=source, event=event, target=target, effects=effects)

    def settle_idle(self) -> None:
        """Leave ``downloading`` for ``idle`` when there was nothing to download."""
        self._session.state = PlaybackState.IDLE
        self._session.downloading = False
        self._session.touch()
