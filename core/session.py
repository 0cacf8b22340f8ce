# Copyright (C) 2025 grodz
#
# This file is part of Airwave.
#
# Airwave is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""
Audio Session - Per-Guild Radio State Machine

Owns one guild's voice connection, the live radio source, the volume and the
recovery scheduler.

    CONNECTING ──► PLAYING ◄──► PAUSED
        ▲             │            │
        │             ▼            ▼
        └──────── STOPPED ◄────────┘          any ──► DISCONNECTED (terminal)

User commands (start/stop/pause/resume/set_volume/disconnect) and external
events (player idle/error, voice dropped) are the only triggers. Events never
raise: recoverable faults become scheduled recovery. Commands raise StateError
or ValidationError for bad requests, and recoverable errors only when the user
explicitly asked to start.
"""

import asyncio
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from itertools import count
from time import monotonic as _now
from typing import Any, Awaitable, Callable, Dict, Optional

import disnake

logger = logging.getLogger(__name__)  # For debug/error logs
user_logger = logging.getLogger('airwave')  # For operator-facing messages

from config.audio import DEFAULT_VOLUME, VOLUME_MIN, VOLUME_MAX
from config.settings import RADIO_URL
from config.timing import STREAM_HEALTHY_AFTER, VOICE_RECONNECT_DELAY
from core.decoder import make_radio_source
from core.errors import (
    RECOVERABLE_ERRORS,
    PlaybackError,
    StateError,
    ValidationError,
    VoiceConnectionError,
)
from core.scheduler import ReconnectScheduler, RecoveryKind
from utils.discord_helpers import format_guild_log, safe_disconnect

# async (voice_channel_id) -> connected voice client
Connector = Callable[[int], Awaitable[Any]]
# (url, volume) -> volume-controllable audio source
SourceFactory = Callable[[str, float], Any]


class SessionStatus(Enum):
    """Lifecycle state of one guild's radio."""
    CONNECTING = 'connecting'
    PLAYING = 'playing'
    PAUSED = 'paused'
    STOPPED = 'stopped'
    DISCONNECTED = 'disconnected'


_TOKEN_IDS = count(1)


@dataclass(slots=True)
class PlaybackToken:
    """Scopes player callbacks to one play attempt.

    disnake fires the ``after`` callback for every stream that ends, including
    the ones we stopped on purpose. Each play attempt gets a fresh token; a
    callback whose token was cancelled or replaced is ignored.

    started_at and from_recovery let the session tell a healthy stream from
    one that died right after a recovery attempt brought it up.
    """

    id: int = field(default_factory=lambda: next(_TOKEN_IDS))
    started_at: float = field(default_factory=_now)
    from_recovery: bool = False
    cancelled: bool = False

    def cancel(self) -> None:
        """Mark the token as cancelled so late callbacks exit early."""
        self.cancelled = True


class AudioSession:
    """
    Radio state machine for a single guild.

    Created and destroyed only by SessionRegistry. Holds:
    - voice_client: the transport connection (exclusively owned)
    - source: the live decoder-backed, volume-wrapped audio source
    - scheduler: the single recovery slot (stream backoff / voice rejoin)
    """

    def __init__(
        self,
        guild_id: int,
        voice_channel_id: int,
        connector: Connector,
        *,
        radio_url: Optional[str] = None,
        source_factory: SourceFactory = make_radio_source,
        volume: float = DEFAULT_VOLUME,
        registry=None,
        bot=None,
        scheduler_options: Optional[Dict[str, Any]] = None,
        reconnect_settle_delay: float = VOICE_RECONNECT_DELAY,
        stream_healthy_after: float = STREAM_HEALTHY_AFTER,
        clock: Callable[[], float] = _now,
    ):
        self.guild_id = guild_id
        self._voice_channel_id = voice_channel_id
        self.connector = connector
        self.radio_url = radio_url or RADIO_URL
        self.source_factory = source_factory
        self.registry = registry
        self.bot = bot
        self.reconnect_settle_delay = reconnect_settle_delay
        self.stream_healthy_after = stream_healthy_after
        self._clock = clock

        self.volume: float = volume
        self.status = SessionStatus.CONNECTING

        self.voice_client = None
        self.source = None
        self._token: Optional[PlaybackToken] = None

        # Status to restore once a voice rejoin succeeds
        self._resume_status: Optional[SessionStatus] = None

        # Race condition flags (see _callbacks_suppressed/_rejoining)
        self._suppress_callback: bool = False
        self._is_reconnecting: bool = False

        self.scheduler = ReconnectScheduler(
            guild_id,
            is_active=self._is_recovery_active,
            retry_stream=self._retry_stream,
            recover_connection=self._recover_connection,
            bot=bot,
            **(scheduler_options or {}),
        )

    def __repr__(self) -> str:
        return (
            f"<AudioSession guild={self.guild_id} channel={self._voice_channel_id} "
            f"status={self.status.value} volume={self.volume_percent}%>"
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def voice_channel_id(self) -> int:
        """Target voice channel, fixed for the session's life."""
        return self._voice_channel_id

    @property
    def volume_percent(self) -> int:
        return round(self.volume * 100)

    @property
    def is_connected(self) -> bool:
        vc = self.voice_client
        try:
            return bool(vc and vc.is_connected())
        except (AttributeError, RuntimeError):
            return False

    @property
    def is_registered(self) -> bool:
        """True while the registry still maps this guild to this session."""
        return self.registry is None or self.registry.get(self.guild_id) is self

    @property
    def has_stream(self) -> bool:
        return self.source is not None and self._token is not None

    @property
    def pending_recovery(self) -> Optional[RecoveryKind]:
        return self.scheduler.kind if self.scheduler.pending else None

    def snapshot(self) -> Dict[str, Any]:
        """Point-in-time view for status replies. Re-fetch, don't cache."""
        return {
            'guild_id': self.guild_id,
            'voice_channel_id': self._voice_channel_id,
            'status': self.status,
            'volume': self.volume_percent,
            'recovery': self.pending_recovery,
            'recovery_in': self.scheduler.remaining,
            'backoff_delay': self.scheduler.delay,
            'failures': self.scheduler.failures,
        }

    # =========================================================================
    # User Commands
    # =========================================================================

    async def start(self) -> None:
        """
        (Re)start the radio: connect if needed, spawn a fresh stream, play.

        Reuses a live voice connection. Any pending recovery is cancelled
        first: an explicit start supersedes it.

        Raises:
            VoiceConnectionError, DecodeUnavailable, PlaybackError: the command
                fails and no background recovery is armed (re-issue start)
            StateError: the session was disconnected
        """
        self._ensure_open()
        self.scheduler.cancel()
        self._resume_status = None
        self.status = SessionStatus.CONNECTING

        try:
            await self._ensure_connection()
            self._start_playback()
        except RECOVERABLE_ERRORS:
            if self.status is SessionStatus.CONNECTING:
                self.status = SessionStatus.STOPPED
            raise

        self.scheduler.reset()
        user_logger.info(f"{format_guild_log(self.guild_id, self.bot)}: Radio started")

    async def restart(self) -> None:
        """Stop (if running) then start again on the same connection."""
        if self.status in (SessionStatus.CONNECTING, SessionStatus.PLAYING, SessionStatus.PAUSED):
            self.stop()
        await self.start()

    def stop(self) -> None:
        """
        Halt playback, keep the voice connection.

        Cancels any pending recovery before returning.

        Raises:
            StateError: already stopped or disconnected
        """
        self._ensure_open()
        if self.status is SessionStatus.STOPPED:
            raise StateError("The radio is already stopped")

        self.scheduler.cancel()
        self._resume_status = None
        self._halt_player()
        self.status = SessionStatus.STOPPED
        user_logger.info(f"{format_guild_log(self.guild_id, self.bot)}: Radio stopped")

    def pause(self) -> None:
        """Raises StateError unless PLAYING."""
        if self.status is not SessionStatus.PLAYING:
            raise StateError("The radio isn't playing")
        try:
            self.voice_client.pause()
        except (AttributeError, disnake.ClientException) as e:
            raise StateError(f"Can't pause right now ({e})") from e
        self.status = SessionStatus.PAUSED

    def resume(self) -> None:
        """Raises StateError unless PAUSED."""
        if self.status is not SessionStatus.PAUSED:
            raise StateError("The radio isn't paused")
        try:
            self.voice_client.resume()
        except (AttributeError, disnake.ClientException) as e:
            raise StateError(f"Can't resume right now ({e})") from e
        self.status = SessionStatus.PLAYING

    def set_volume(self, level: int) -> bool:
        """
        Set volume from a whole percentage.

        Args:
            level: 1-100

        Returns:
            True if applied to the live stream, False if there is no active
            stream (the value is kept for the next one)

        Raises:
            ValidationError: level outside 1-100 (volume unchanged)
        """
        if isinstance(level, bool) or not isinstance(level, int) or not VOLUME_MIN <= level <= VOLUME_MAX:
            raise ValidationError(f"Volume must be between {VOLUME_MIN} and {VOLUME_MAX}")
        self._ensure_open()

        self.volume = level / 100.0

        if self.has_stream and hasattr(self.source, 'volume'):
            self.source.volume = self.volume
            logger.debug(f"{format_guild_log(self.guild_id, self.bot)}: Volume set to {level}%")
            return True
        return False

    async def disconnect(self) -> None:
        """
        Terminal teardown: cancel recovery, kill the stream, leave voice.

        State flips to DISCONNECTED and the registry entry is dropped before
        the first await, so nothing can observe a half-torn-down session.
        Safe to call more than once.
        """
        if self.status is SessionStatus.DISCONNECTED:
            return

        self.status = SessionStatus.DISCONNECTED
        self.scheduler.cancel()
        self._resume_status = None
        if self.registry is not None:
            self.registry.discard(self)

        self._halt_player()
        vc, self.voice_client = self.voice_client, None
        await safe_disconnect(vc, force=True)

        user_logger.info(f"{format_guild_log(self.guild_id, self.bot)}: Radio disconnected")

    # =========================================================================
    # External Events
    # =========================================================================

    def on_player_idle(self) -> None:
        """The stream ended on its own: retry quickly through the backoff path."""
        if not self._should_recover_stream():
            return
        failed_retry = self._settle_backoff()
        self._halt_player()
        self.status = SessionStatus.CONNECTING
        if failed_retry:
            self.scheduler.record_failure()
            delay = self.scheduler.schedule_retry()
            user_logger.warning(
                f"{format_guild_log(self.guild_id, self.bot)}: Stream dropped right after reconnecting, "
                f"retrying in {delay:.0f}s"
            )
            return
        delay = self.scheduler.schedule_retry(fast=True)
        user_logger.warning(
            f"{format_guild_log(self.guild_id, self.bot)}: Stream ended, retrying in {delay:.0f}s"
        )

    def on_player_error(self, error: BaseException) -> None:
        """The player failed: log it and retry at the current backoff delay."""
        if not self._should_recover_stream():
            return
        logger.error(f"{format_guild_log(self.guild_id, self.bot)}: Player error: {error}")
        if self._settle_backoff():
            self.scheduler.record_failure()
        self._halt_player()
        self.status = SessionStatus.CONNECTING
        delay = self.scheduler.schedule_retry()
        user_logger.warning(
            f"{format_guild_log(self.guild_id, self.bot)}: Stream failed, retrying in {delay:.0f}s"
        )

    def on_connection_disconnected(self) -> None:
        """
        The voice connection dropped: rejoin the same channel after a fixed
        delay. Does not go through exponential backoff.

        Drop events can arrive late (e.g. for a client we replaced ourselves),
        so nothing is torn down here; the rejoin attempt checks the real
        connection state when it fires.
        """
        if self.status is SessionStatus.DISCONNECTED or self._is_reconnecting:
            return
        if self.pending_recovery is RecoveryKind.CONNECTION:
            return

        if self.status in (SessionStatus.PLAYING, SessionStatus.PAUSED, SessionStatus.STOPPED):
            self._resume_status = self.status
        else:
            self._resume_status = SessionStatus.PLAYING
        if self.status is not SessionStatus.STOPPED:
            self.status = SessionStatus.CONNECTING

        delay = self.scheduler.schedule_connection_recovery()
        user_logger.warning(
            f"{format_guild_log(self.guild_id, self.bot)}: Voice connection lost, rejoining in {delay:.0f}s"
        )

    # =========================================================================
    # Recovery (called by the scheduler)
    # =========================================================================

    def _is_recovery_active(self, kind: RecoveryKind) -> bool:
        """Stale-timer guard."""
        if self.status is SessionStatus.DISCONNECTED or not self.is_registered:
            return False
        if kind is RecoveryKind.STREAM and self.status is SessionStatus.STOPPED:
            return False
        return True

    async def _retry_stream(self) -> bool:
        """Rebuild the stream on the existing connection."""
        if not self.is_connected:
            # Nothing to play into; voice rejoin takes over the slot
            logger.info(f"{format_guild_log(self.guild_id, self.bot)}: Voice is gone, rejoining before retrying stream")
            self.on_connection_disconnected()
            return False

        try:
            self._start_playback(from_recovery=True)
        except RECOVERABLE_ERRORS as e:
            logger.warning(f"{format_guild_log(self.guild_id, self.bot)}: Stream retry failed: {e}")
            self.status = SessionStatus.CONNECTING
            return False

        user_logger.info(f"{format_guild_log(self.guild_id, self.bot)}: Stream reconnected")
        return True

    async def _recover_connection(self) -> bool:
        """Rejoin the same voice channel, then resume what was playing."""
        if not self.is_connected:
            old_vc = self.voice_client
            with self._rejoining():
                self._halt_player()
                self.voice_client = None
                await safe_disconnect(old_vc, force=True)
                await asyncio.sleep(self.reconnect_settle_delay)

                if self.status is SessionStatus.DISCONNECTED:
                    return False

                try:
                    vc = await self.connector(self._voice_channel_id)
                except VoiceConnectionError as e:
                    logger.warning(f"{format_guild_log(self.guild_id, self.bot)}: Voice rejoin failed: {e}")
                    return False

                # disconnect() may have run while we were joining
                if self.status is SessionStatus.DISCONNECTED:
                    await safe_disconnect(vc, force=True)
                    return False
                self.voice_client = vc

            user_logger.info(f"{format_guild_log(self.guild_id, self.bot)}: Voice connection re-established")
        else:
            logger.debug(f"{format_guild_log(self.guild_id, self.bot)}: Voice already connected, resubscribing only")

        self._resubscribe()
        return True

    def _resubscribe(self) -> None:
        """Put playback back the way it was before the voice drop."""
        wanted = self._resume_status or SessionStatus.PLAYING
        self._resume_status = None

        if wanted is SessionStatus.STOPPED:
            self.status = SessionStatus.STOPPED
            return

        if self.has_stream:
            # Stream survived the drop (stale event or voice self-healed)
            paused = False
            try:
                paused = self.voice_client.is_paused()
            except (AttributeError, RuntimeError):
                pass
            self.status = SessionStatus.PAUSED if paused else SessionStatus.PLAYING
            return

        try:
            self._start_playback(from_recovery=True)
        except RECOVERABLE_ERRORS as e:
            # Connection is back but the stream isn't: hand over to backoff
            logger.warning(f"{format_guild_log(self.guild_id, self.bot)}: Stream failed after rejoin: {e}")
            self.status = SessionStatus.CONNECTING
            self.scheduler.schedule_retry()
            return

        if wanted is SessionStatus.PAUSED:
            try:
                self.voice_client.pause()
                self.status = SessionStatus.PAUSED
            except (AttributeError, disnake.ClientException) as e:
                logger.debug(f"{format_guild_log(self.guild_id, self.bot)}: Re-pause after rejoin failed: {e}")

    # =========================================================================
    # Internals
    # =========================================================================

    def _ensure_open(self) -> None:
        if self.status is SessionStatus.DISCONNECTED:
            raise StateError("This radio session has been disconnected")

    def _settle_backoff(self) -> bool:
        """
        Judge the stream that just ended against the healthy threshold.

        A stream that stayed up long enough resets the backoff. One that a
        recovery attempt brought up and that died before then is a failed
        attempt.

        Returns:
            True if the ended stream counts as a failed recovery attempt
        """
        token = self._token
        if token is None:
            return False
        if self._clock() - token.started_at >= self.stream_healthy_after:
            self.scheduler.reset()
            return False
        return token.from_recovery

    def _should_recover_stream(self) -> bool:
        if self.status in (SessionStatus.STOPPED, SessionStatus.DISCONNECTED):
            return False
        # A pending voice rejoin restarts the stream itself
        if self._is_reconnecting or self.pending_recovery is RecoveryKind.CONNECTION:
            return False
        return True

    async def _ensure_connection(self) -> None:
        """Reuse the live connection or open a new one."""
        if self.is_connected:
            return

        stale_vc, self.voice_client = self.voice_client, None
        if stale_vc is not None:
            await safe_disconnect(stale_vc, force=True)

        vc = await self.connector(self._voice_channel_id)

        # disconnect() may have run while we were joining
        if self.status is SessionStatus.DISCONNECTED:
            await safe_disconnect(vc, force=True)
            raise StateError("This radio session has been disconnected")
        self.voice_client = vc

    def _start_playback(self, from_recovery: bool = False) -> None:
        """
        Replace whatever is playing with a fresh stream.

        Args:
            from_recovery: a recovery attempt (not a user command) is starting it

        Raises:
            VoiceConnectionError: not connected
            DecodeUnavailable: decoder could not start
            PlaybackError: the player refused the source
        """
        if not self.is_connected:
            raise VoiceConnectionError("Not connected to voice")

        self._halt_player()

        source = self.source_factory(self.radio_url, self.volume)
        token = PlaybackToken(started_at=self._clock(), from_recovery=from_recovery)
        self._token = token
        try:
            self.voice_client.play(source, after=self._make_after(token))
        except (disnake.DiscordException, TypeError) as e:
            token.cancel()
            self._token = None
            self._cleanup_source(source)
            raise PlaybackError(f"Player refused the stream: {e}") from e

        self.source = source
        self.status = SessionStatus.PLAYING
        logger.debug(f"{format_guild_log(self.guild_id, self.bot)}: Stream playing (token {token.id})")

    def _make_after(self, token: PlaybackToken):
        loop = asyncio.get_running_loop()

        def after_stream(error):
            """
            Fired when the stream ends.

            CRITICAL: Runs in disnake's audio thread, NOT the event loop thread.
            Everything is handed to the loop with call_soon_threadsafe().
            """
            try:
                loop.call_soon_threadsafe(self._on_player_finished, token, error)
            except RuntimeError:
                # Loop already closed (shutdown)
                pass

        return after_stream

    def _on_player_finished(self, token: PlaybackToken, error: Optional[BaseException]) -> None:
        """Route a player callback to the matching event, or drop it if stale."""
        if token.cancelled or token is not self._token:
            logger.debug(f"{format_guild_log(self.guild_id, self.bot)}: Ignoring callback from superseded stream")
            return
        if self._suppress_callback or self._is_reconnecting:
            logger.debug(f"{format_guild_log(self.guild_id, self.bot)}: Skipping callback (suppressed)")
            return

        if error is not None:
            self.on_player_error(error)
        else:
            self.on_player_idle()

    def cancel_active_playback(self) -> None:
        """Invalidate the current playback token so its callback bails out."""
        token, self._token = self._token, None
        if token is not None:
            token.cancel()

    @contextmanager
    def _callbacks_suppressed(self):
        """
        Stop the player without the stop being treated as a stream failure.

        Invalidates the current playback token first, so the ``after``
        callback for the stopped stream is dropped even if it reaches the loop
        after this block has exited. Nested use restores the outer value.
        """
        self.cancel_active_playback()
        prev = self._suppress_callback
        self._suppress_callback = True
        try:
            yield
        finally:
            self._suppress_callback = prev

    @contextmanager
    def _rejoining(self):
        """
        Mark the session as rejoining voice.

        While set, player callbacks and voice-drop events are ignored: the
        drop we cause ourselves must not arm another rejoin.
        """
        prev = self._is_reconnecting
        self._is_reconnecting = True
        try:
            yield
        finally:
            self._is_reconnecting = prev

    def _halt_player(self) -> None:
        """Stop the player and kill the decoder. Never raises."""
        vc = self.voice_client
        if vc is not None:
            with self._callbacks_suppressed():
                try:
                    if vc.is_playing() or vc.is_paused():
                        vc.stop()
                except (AttributeError, RuntimeError, disnake.ClientException) as e:
                    logger.debug(f"{format_guild_log(self.guild_id, self.bot)}: Player stop failed: {e}")
        else:
            self.cancel_active_playback()

        source, self.source = self.source, None
        if source is not None:
            self._cleanup_source(source)

    def _cleanup_source(self, source) -> None:
        try:
            source.cleanup()
        except (OSError, RuntimeError, AttributeError) as e:
            logger.debug(f"{format_guild_log(self.guild_id, self.bot)}: Source cleanup failed: {e}", exc_info=True)
