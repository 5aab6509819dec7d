"""
Call session manager

Owns the single call this endpoint can have at a time.

    Idle --ring--> Ringing --answer--> Active
    Idle --dial--> Dialing --stream--> Active
    Ringing/Dialing/Active --hangup--> Idle

Every way out of a call (user end, reject, cancel, remote close, call error,
failed answer) goes through one teardown that closes the call handle, stops
the local tracks and clears both media handles. Teardown is idempotent.

Acquiring local media is asynchronous. If the attempt is abandoned while the
acquisition is in flight, the media that eventually arrives is stopped
immediately instead of being wired into a call.
"""

from typing import Dict, Optional, Tuple

from eind.core.logging_config import get_logger
from eind.core.notifications import Notifier
from eind.core.registry import ConnectionRegistry
from eind.core.transport import (
    CallHandle,
    MediaAccessError,
    MediaDevices,
    MediaStream,
    TransportError,
    TransportProvider,
)
from eind.models.peer import CallDirection, CallKind, CallPhase, CallSession

logger = get_logger(__name__)


class ProtocolViolation(Exception):
    """Raised for call events that do not fit the current call state"""

    pass


_TRANSITIONS: Dict[Tuple[CallPhase, str], CallPhase] = {
    (CallPhase.IDLE, "dial"): CallPhase.DIALING,
    (CallPhase.IDLE, "ring"): CallPhase.RINGING,
    (CallPhase.RINGING, "answer"): CallPhase.ACTIVE,
    (CallPhase.DIALING, "stream"): CallPhase.ACTIVE,
    (CallPhase.ACTIVE, "stream"): CallPhase.ACTIVE,
    (CallPhase.RINGING, "hangup"): CallPhase.IDLE,
    (CallPhase.DIALING, "hangup"): CallPhase.IDLE,
    (CallPhase.ACTIVE, "hangup"): CallPhase.IDLE,
}


def next_phase(phase: CallPhase, trigger: str) -> CallPhase:
    """Look up a transition.

    Raises:
        ProtocolViolation: If trigger is not allowed in phase
    """
    try:
        return _TRANSITIONS[(phase, trigger)]
    except KeyError:
        raise ProtocolViolation(f"'{trigger}' not allowed while {phase.value}")


class CallSessionManager:
    def __init__(
        self,
        transport: TransportProvider,
        media: MediaDevices,
        registry: ConnectionRegistry,
        notifier: Notifier,
    ):
        self.transport = transport
        self.media = media
        self.registry = registry
        self.notifier = notifier
        self._session: Optional[CallSession] = None
        # identity token of the media acquisition currently allowed to finish
        self._attempt: Optional[object] = None

    @property
    def session(self) -> Optional[CallSession]:
        return self._session

    @property
    def phase(self) -> CallPhase:
        return self._session.phase if self._session else CallPhase.IDLE

    @property
    def busy(self) -> bool:
        return self._session is not None or self._attempt is not None

    # -- user actions --

    async def start_call(self, remote_id: str, kind: CallKind = CallKind.VIDEO) -> bool:
        """Place an outgoing call.

        Returns:
            bool: True if the call was placed and is now dialing
        """
        kind = CallKind(kind)
        if self.busy:
            self.notifier.notify("Already in a call")
            return False
        if not self.registry.is_open(remote_id):
            self.notifier.notify("Call failed (User Offline)")
            return False

        attempt = self._attempt = object()
        try:
            stream = await self.media.acquire(video=kind == CallKind.VIDEO, audio=True)
        except MediaAccessError as e:
            if self._attempt is attempt:
                self._attempt = None
                logger.warning(f"Media access failed: {e}")
                self.notifier.notify(f"Camera Error: {e}")
            return False

        if self._attempt is not attempt:
            logger.info("Call attempt abandoned, releasing media")
            stream.stop()
            return False
        self._attempt = None

        try:
            call = self.transport.call(remote_id, stream)
        except TransportError as e:
            stream.stop()
            logger.warning(f"Call to {remote_id} failed: {e}")
            self.notifier.notify(f"Call failed: {e}")
            return False

        self._session = CallSession(
            remote_id=remote_id,
            direction=CallDirection.OUTGOING,
            phase=next_phase(CallPhase.IDLE, "dial"),
            call=call,
            kind=kind,
            local_media=stream,
        )
        logger.info(f"Dialing {remote_id}")
        return True

    async def answer_call(self) -> bool:
        session = self._session
        if session is None or session.phase != CallPhase.RINGING:
            logger.debug("answer_call without a ringing call")
            return False
        if self._attempt is not None:
            return False

        attempt = self._attempt = object()
        try:
            stream = await self.media.acquire(
                video=session.kind == CallKind.VIDEO, audio=True
            )
        except MediaAccessError as e:
            if self._attempt is attempt:
                logger.warning(f"Media access failed while answering: {e}")
                self.notifier.notify(f"Error answering: {e}")
                self._teardown()
            return False

        if self._attempt is not attempt or self._session is not session:
            logger.info("Answer abandoned, releasing media")
            stream.stop()
            return False
        self._attempt = None

        session.local_media = stream
        try:
            session.call.answer(stream)
        except TransportError as e:
            logger.warning(f"Answering {session.remote_id} failed: {e}")
            self.notifier.notify(f"Error answering: {e}")
            self._teardown()
            return False

        session.phase = next_phase(session.phase, "answer")
        logger.info(f"Call with {session.remote_id} answered")
        return True

    def reject_call(self) -> bool:
        if self._session is None or self._session.phase != CallPhase.RINGING:
            return False
        logger.info(f"Rejecting call from {self._session.remote_id}")
        return self._teardown()

    def cancel_call(self) -> bool:
        """Abort an outgoing call before the remote accepted it."""
        if self._session is None:
            if self._attempt is not None:
                self._attempt = None
                return True
            return False
        if self._session.phase != CallPhase.DIALING:
            return False
        return self._teardown()

    def end_call(self) -> bool:
        return self._teardown()

    # -- transport events --

    def handle_incoming(self, call: CallHandle) -> None:
        if self.busy:
            logger.info(f"Busy, closing incoming call from {call.remote_id}")
            self._close_quietly(call)
            return
        self._session = CallSession(
            remote_id=call.remote_id,
            direction=CallDirection.INCOMING,
            phase=next_phase(CallPhase.IDLE, "ring"),
            call=call,
        )
        logger.info(f"Incoming call from {call.remote_id}")

    def handle_stream(self, call: CallHandle, stream: MediaStream) -> None:
        try:
            session = self._current(call)
            session.phase = next_phase(session.phase, "stream")
        except ProtocolViolation as e:
            logger.debug(f"Ignoring call stream: {e}")
            return
        session.remote_media = stream

    def handle_close(self, call: CallHandle) -> None:
        try:
            session = self._current(call)
        except ProtocolViolation as e:
            logger.debug(f"Ignoring call close: {e}")
            return
        session.call_closed = True
        self._teardown()

    def handle_error(self, call: CallHandle, reason: str) -> None:
        try:
            session = self._current(call)
        except ProtocolViolation as e:
            logger.debug(f"Ignoring call error: {e}")
            return
        logger.warning(f"Call with {session.remote_id} failed: {reason}")
        self.notifier.notify(f"Call Error: {reason}")
        self._teardown()

    # -- internals --

    def _current(self, call: CallHandle) -> CallSession:
        if self._session is None or self._session.call is not call:
            raise ProtocolViolation("event for a call that is not the current one")
        return self._session

    def _teardown(self) -> bool:
        self._attempt = None
        session = self._session
        if session is None:
            return False
        self._session = None

        if not session.call_closed:
            session.call_closed = True
            self._close_quietly(session.call)
        if session.local_media is not None:
            session.local_media.stop()
        session.local_media = None
        session.remote_media = None
        session.phase = next_phase(session.phase, "hangup")
        logger.info(f"Call with {session.remote_id} ended")
        return True

    def _close_quietly(self, call: CallHandle) -> None:
        try:
            call.close()
        except TransportError as e:
            logger.warning(f"Closing call failed: {e}")
