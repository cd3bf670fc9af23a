"""
Call Controller - Connection Lifecycle Controller

Owns the Presence Registry and the Call Session Table and is their only
writer. Every inbound event is handled to completion before the next one
starts: all public operations run under a single ``asyncio.Lock``, which
gives the same turn-taking a single-threaded event dispatcher would.

Writes to the User Directory and the Call Record Sink are dispatched as
background tasks bounded by ``collaborator_timeout``; their failures are
logged and never reach a client. Writes sharing a key (one call, one user)
are chained so they land in the order they were issued.

Call lifecycle:
    initiate -> incoming-call to callee, call-initiated to caller, new-call to admins
    accept   -> call-accepted to both parties
    reject   -> call-rejected to caller
    end      -> call-ended to both parties
    expiry   -> call-ended (reason=expired) to both parties
    disconnect of either party -> call-ended (reason=disconnect) to the other
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from pydantic import ValidationError

from app.config.constants import (
    END_REASON_DISCONNECT,
    END_REASON_EXPIRED,
    END_REASON_HANGUP,
    END_REASON_REJECTED,
    ROLE_ADMIN,
)
from app.config.settings import settings
from app.models.call import CallStatus
from app.schemas.websocket_events import (
    AcceptCallEvent,
    ActiveCallsMessage,
    AvailableUsersMessage,
    CallAcceptedMessage,
    CallEndedMessage,
    CallErrorMessage,
    CallInitiatedMessage,
    CallRejectedMessage,
    CallStatusUpdateMessage,
    EndCallEvent,
    GetActiveCallsEvent,
    GetAvailableUsersEvent,
    HeartbeatAckMessage,
    HeartbeatEvent,
    IncomingCallMessage,
    InitiateCallEvent,
    NewCallMessage,
    PingEvent,
    PongMessage,
    RejectCallEvent,
    RelayEvent,
    UserDisconnectedMessage,
    UserJoinedEvent,
    UserStatusUpdateMessage,
    WireModel,
    YourInfoMessage,
    parse_inbound_event,
)
from app.services import metrics
from app.services.call import (
    CallParty,
    CallRecordSink,
    CallServiceError,
    CallSession,
    CallSessionTable,
    InvalidStateError,
    NotAuthorizedError,
    TargetBusyError,
    TargetUnavailableError,
)
from app.services.connection import ConnectionManager
from app.services.directory import DirectoryUser, UserDirectory
from app.services.presence import (
    AvailabilityIndex,
    Participant,
    PresenceRegistry,
    can_call,
    counterpart_role,
    next_registration_seq,
)
from app.services.signaling import SignalingRelay

logger = logging.getLogger(__name__)

# Close code sent to a socket replaced by a newer login of the same user
CLOSE_CODE_REPLACED = 4000


class CallController:
    """
    Top-level dispatcher for calling-socket events.

    One instance per process; created by the app lifespan and handed to the
    WebSocket route. Tests build fresh instances with fake collaborators.
    """

    def __init__(
        self,
        connections: ConnectionManager,
        directory: Optional[UserDirectory] = None,
        sink: Optional[CallRecordSink] = None,
        invite_timeout: Optional[float] = None,
        collaborator_timeout: Optional[float] = None,
    ):
        self.connections = connections
        self.directory = directory
        self.sink = sink
        self.invite_timeout = (
            settings.CALL_INVITE_TIMEOUT_SECONDS if invite_timeout is None else invite_timeout
        )
        self.collaborator_timeout = (
            settings.COLLABORATOR_TIMEOUT_SECONDS if collaborator_timeout is None else collaborator_timeout
        )

        self.presence = PresenceRegistry()
        self.availability = AvailabilityIndex(self.presence)
        self.calls = CallSessionTable()
        self.relay_service = SignalingRelay(connections, self.calls)

        self._lock = asyncio.Lock()
        self._background: Set[asyncio.Task] = set()
        self._write_chains: Dict[str, asyncio.Task] = {}

        self._handlers: Dict[type, Callable[[str, Any], Awaitable[Any]]] = {
            UserJoinedEvent: self._on_user_joined,
            GetAvailableUsersEvent: lambda handle, event: self.get_available_users(handle),
            InitiateCallEvent: self._on_initiate_call,
            AcceptCallEvent: lambda handle, event: self.accept(event.call_id, handle, event.signal),
            RejectCallEvent: lambda handle, event: self.reject(event.call_id, handle),
            EndCallEvent: lambda handle, event: self.end(event.call_id, handle),
            RelayEvent: lambda handle, event: self.relay(
                event.type, handle, event.target, event.payload, event.call_id
            ),
            GetActiveCallsEvent: lambda handle, event: self.get_active_calls(handle),
            HeartbeatEvent: lambda handle, event: self.heartbeat(handle),
            PingEvent: lambda handle, event: self.connections.send(handle, PongMessage()),
        }

    # === Dispatch ===

    async def handle_frame(self, handle: str, data: Any) -> None:
        """Validate a decoded JSON frame and dispatch it. Bad frames become ``call-error``."""
        try:
            event = parse_inbound_event(data)
        except ValidationError as e:
            event_type = data.get("type") if isinstance(data, dict) else None
            logger.warning(f"[Controller] Invalid frame from {handle}: {e.error_count()} error(s)")
            metrics.errors_total.labels(code="InvalidPayload").inc()
            await self.connections.send(handle, CallErrorMessage(
                code="InvalidPayload",
                message="Malformed or unknown event",
                event=event_type if isinstance(event_type, str) else None,
            ))
            return

        await self.handle_event(handle, event)

    async def handle_event(self, handle: str, event: Any) -> None:
        """
        Run one validated event to completion.

        Domain errors are reported to the originating connection only; any
        other failure is logged and reported as InternalError so the socket
        keeps being served.
        """
        handler = self._handlers[type(event)]
        try:
            await handler(handle, event)
        except CallServiceError as e:
            await self._report_error(handle, e.code, e.message, event.type)
        except Exception:
            logger.exception(f"[Controller] Unhandled error in {event.type} from {handle}")
            await self._report_error(handle, "InternalError", "Unexpected server error", event.type)

    async def _report_error(self, handle: str, code: str, message: str, event_type: Optional[str]):
        logger.warning(f"[Controller] {event_type} from {handle} failed: {code} - {message}")
        metrics.errors_total.labels(code=code).inc()
        await self.connections.send(handle, CallErrorMessage(code=code, message=message, event=event_type))

    async def _on_user_joined(self, handle: str, event: UserJoinedEvent):
        # Order is taken when the frame arrives; the directory lookup runs
        # outside the lock and may finish in any order.
        seq = next_registration_seq()
        profile = await self._lookup_user(event.id)
        await self.join(handle, event.id, event.announced_name, event.role, profile=profile, seq=seq)

    async def _on_initiate_call(self, handle: str, event: InitiateCallEvent):
        await self.initiate(
            handle,
            event.callee_id,
            caller_name=event.caller_name,
            caller_id=event.caller_id,
            signal=event.signal,
        )

    # === Presence ===

    async def join(
        self,
        handle: str,
        user_id: str,
        name: Optional[str],
        role: str,
        profile: Optional[DirectoryUser] = None,
        seq: Optional[int] = None,
    ) -> Optional[Participant]:
        """
        Register the user announced on ``handle``.

        The display name is the announced one, else the directory's, else the
        user id. Of two connections announcing the same user, the later
        announcement (``seq``) stays and the other is retired. Returns None when
        ``handle`` is the one retired or has already gone away.
        """
        async with self._lock:
            return await self._join(handle, user_id, name, role, profile, seq)

    async def _join(self, handle, user_id, name, role, profile, seq) -> Optional[Participant]:
        if not self.connections.is_connected(handle):
            logger.info(f"[Controller] Ignoring join of {user_id} on closed connection {handle}")
            return None

        if profile is not None and profile.role != role:
            logger.warning(
                f"[Controller] {user_id} announced role {role}, directory says {profile.role}"
            )
            role = profile.role

        current = self.presence.get(handle)
        if current is not None and current.user_id != user_id:
            raise InvalidStateError("This connection has already joined as another user")

        if seq is None:
            seq = next_registration_seq()
        latest = self.presence.find_by_user_id(user_id)
        if latest is not None and latest.connection_handle != handle and latest.seq > seq:
            logger.info(
                f"[Controller] {user_id} already re-joined on {latest.connection_handle}, dropping {handle}"
            )
            await self.connections.close(
                handle, code=CLOSE_CODE_REPLACED, reason="Signed in from another connection"
            )
            await self._disconnect(handle)
            return None

        # A user lives on one connection: retire older sockets of the same user first
        for stale_handle in self.presence.handles_for_user(user_id):
            if stale_handle != handle:
                logger.info(f"[Controller] {user_id} re-joined on {handle}, dropping {stale_handle}")
                await self.connections.close(
                    stale_handle, code=CLOSE_CODE_REPLACED, reason="Signed in from another connection"
                )
                await self._disconnect(stale_handle)

        participant = Participant(
            user_id=user_id,
            display_name=name or (profile.display_name if profile else None) or user_id,
            role=role,
            connection_handle=handle,
            seq=seq,
        )
        self.presence.register(handle, participant)

        await self.connections.send(handle, YourInfoMessage(**participant.to_info().model_dump()))
        await self.connections.send(handle, AvailableUsersMessage(
            users=self.availability.available_for(role)
        ))
        await self._push_availability(participant)
        await self._notify_admins(UserStatusUpdateMessage(
            user_id=user_id,
            username=participant.display_name,
            role=role,
            is_online=True,
        ))

        if self.directory is not None:
            self._dispatch(f"user:{user_id}", lambda: self.directory.mark_online(user_id, handle))

        self._observe()
        return participant

    async def get_available_users(self, handle: str) -> List:
        async with self._lock:
            participant = self._require_participant(handle)
            users = self.availability.available_for(participant.role)
            await self.connections.send(handle, AvailableUsersMessage(users=users))
            return users

    async def heartbeat(self, handle: str) -> None:
        async with self._lock:
            participant = self._require_participant(handle)
            if self.directory is not None:
                self._dispatch(
                    f"user:{participant.user_id}",
                    lambda: self.directory.touch(participant.user_id),
                )
            await self.connections.send(handle, HeartbeatAckMessage())

    async def get_active_calls(self, handle: str) -> List[CallSession]:
        async with self._lock:
            participant = self._require_participant(handle)
            if participant.role != ROLE_ADMIN:
                raise NotAuthorizedError("Only admins can list active calls")
            sessions = self.calls.all()
            await self.connections.send(handle, ActiveCallsMessage(
                calls=[s.to_view() for s in sessions]
            ))
            return sessions

    # === Call state machine ===

    async def initiate(
        self,
        caller_handle: str,
        callee_user_id: str,
        caller_name: Optional[str] = None,
        caller_id: Optional[str] = None,
        signal: Any = None,
    ) -> CallSession:
        """
        Start a call from the participant on ``caller_handle`` to ``callee_user_id``.

        Raises:
            NotAuthorizedError if the caller has not joined, is an admin, or spoofs callerId
            TargetUnavailableError if the callee has no live connection or is outside the caller's pool
            TargetBusyError if the callee (or this pair) is already in a call
            InvalidStateError if the caller is already in a call or calls themselves
        """
        async with self._lock:
            caller = self._require_participant(caller_handle)
            if caller_id is not None and caller_id != caller.user_id:
                raise NotAuthorizedError("callerId does not match the joined user")
            if caller.role == ROLE_ADMIN:
                raise NotAuthorizedError("Admins cannot place calls")

            callee = self.presence.find_by_user_id(callee_user_id)
            if callee is None or not self.connections.is_connected(callee.connection_handle):
                raise TargetUnavailableError("User is offline or not connected")
            if callee.connection_handle == caller_handle:
                raise InvalidStateError("Cannot call yourself")
            if not can_call(caller.role, callee.role):
                raise TargetUnavailableError(f"User {callee_user_id} is not available to you")

            if self.calls.find_by_pair(caller_handle, callee.connection_handle):
                raise TargetBusyError("A call between you is already in progress")
            if self.calls.is_busy(callee.connection_handle):
                raise TargetBusyError(f"User {callee_user_id} is already in a call")
            if self.calls.is_busy(caller_handle):
                raise InvalidStateError("You are already in a call")

            session = self.calls.add(CallSession(
                caller=CallParty(caller.user_id, caller_name or caller.display_name, caller_handle),
                callee=CallParty(callee.user_id, callee.display_name, callee.connection_handle),
            ))
            self._schedule_expiry(session)
            self._persist(session)

            await self.connections.send(callee.connection_handle, IncomingCallMessage(
                call_id=session.call_id,
                caller=session.caller.to_info(),
                signal=signal,
            ))
            await self.connections.send(caller_handle, CallInitiatedMessage(
                call_id=session.call_id,
                callee=session.callee.to_info(),
            ))
            await self._notify_admins(NewCallMessage(call=session.to_view()))

            logger.info(
                f"[Controller] Call {session.call_id}: {caller.user_id} -> {callee.user_id} initiated"
            )
            self._observe()
            return session

    async def accept(self, call_id: str, acceptor_handle: str, signal: Any = None) -> CallSession:
        """
        Raises:
            CallNotFoundError, NotAuthorizedError (acceptor is not the callee), InvalidStateError
        """
        async with self._lock:
            session = self.calls.require(call_id)
            if acceptor_handle != session.callee.connection_handle:
                raise NotAuthorizedError("Only the callee can accept this call")

            session.transition(CallStatus.ACCEPTED)
            session.cancel_expiry()
            self._persist(session)

            message = CallAcceptedMessage(
                call_id=call_id,
                accepted_at=session.accepted_at,
                signal=signal,
            )
            await self.connections.send(session.caller.connection_handle, message)
            await self.connections.send(session.callee.connection_handle, message)
            await self._notify_admins(CallStatusUpdateMessage(call=session.to_view()))

            logger.info(f"[Controller] Call {call_id} accepted")
            return session

    async def reject(self, call_id: str, actor_handle: str) -> CallSession:
        async with self._lock:
            session = self.calls.require(call_id)
            if actor_handle != session.callee.connection_handle:
                raise NotAuthorizedError("Only the callee can reject this call")

            self._finish(session, CallStatus.REJECTED, END_REASON_REJECTED)

            await self.connections.send(
                session.caller.connection_handle, CallRejectedMessage(call_id=call_id)
            )
            await self._notify_admins(CallEndedMessage(call_id=call_id, reason=END_REASON_REJECTED))
            return session

    async def end(self, call_id: str, actor_handle: str) -> CallSession:
        async with self._lock:
            session = self.calls.require(call_id)
            if not session.involves(actor_handle):
                raise NotAuthorizedError("You are not a party to this call")

            self._finish(session, CallStatus.ENDED, END_REASON_HANGUP)

            message = CallEndedMessage(
                call_id=call_id,
                reason=END_REASON_HANGUP,
                duration_seconds=session.duration_seconds,
            )
            await self.connections.broadcast(session.handles, message)
            await self._notify_admins(message)
            return session

    async def expire(self, call_id: str) -> Optional[CallSession]:
        """End an invitation nobody answered. No-op if the call already moved on."""
        async with self._lock:
            session = self.calls.get(call_id)
            if session is None or session.status != CallStatus.INITIATED:
                return None

            # The expiry task is the one running this; don't let removal cancel it
            session.expiry_task = None
            self._finish(session, CallStatus.EXPIRED, END_REASON_EXPIRED)

            message = CallEndedMessage(call_id=call_id, reason=END_REASON_EXPIRED)
            await self.connections.broadcast(session.handles, message)
            await self._notify_admins(message)
            return session

    async def relay(
        self,
        kind: str,
        sender_handle: str,
        target_handle: str,
        payload: Any,
        call_id: str,
    ) -> bool:
        async with self._lock:
            return await self.relay_service.forward(kind, sender_handle, target_handle, payload, call_id)

    # === Disconnect ===

    async def disconnect(self, handle: str) -> Optional[Participant]:
        """Tear down everything attached to a closed connection. Safe to call twice."""
        async with self._lock:
            return await self._disconnect(handle)

    async def _disconnect(self, handle: str) -> Optional[Participant]:
        self.connections.disconnect(handle)
        participant = self.presence.unregister(handle)

        for session in self.calls.find_by_handle(handle):
            other = session.other_party(handle)
            self._finish(session, CallStatus.ENDED, END_REASON_DISCONNECT)
            message = CallEndedMessage(
                call_id=session.call_id,
                reason=END_REASON_DISCONNECT,
                duration_seconds=session.duration_seconds,
            )
            await self.connections.send(other.connection_handle, message)
            await self._notify_admins(message)

        if participant is not None:
            info = participant.to_info()
            audience = self.availability.audience_for(participant)
            await self.connections.broadcast(
                audience, UserDisconnectedMessage(**info.model_dump())
            )
            await self._push_availability(participant)
            await self._notify_admins(UserStatusUpdateMessage(
                user_id=participant.user_id,
                username=participant.display_name,
                role=participant.role,
                is_online=False,
            ))
            if self.directory is not None:
                self._dispatch(
                    f"user:{participant.user_id}",
                    lambda: self.directory.mark_offline(participant.user_id, handle),
                )
            logger.info(f"[Controller] {participant.user_id} left ({handle})")

        self._observe()
        return participant

    # === Helpers ===

    def _require_participant(self, handle: str) -> Participant:
        participant = self.presence.get(handle)
        if participant is None:
            raise NotAuthorizedError("User not joined")
        return participant

    def _finish(self, session: CallSession, status: CallStatus, reason: str):
        """Apply a terminal transition, drop the session and record the outcome."""
        session.transition(status, reason=reason)
        self.calls.remove(session.call_id)
        self._persist(session)

        outcome = reason if status == CallStatus.ENDED and reason == END_REASON_DISCONNECT else status.value
        metrics.calls_total.labels(outcome=outcome).inc()
        logger.info(
            f"[Controller] Call {session.call_id} {status.value} ({reason}), "
            f"duration={session.duration_seconds}"
        )
        self._observe()

    async def _push_availability(self, participant: Participant):
        """Send the recomputed availability list to the participant's counterpart role."""
        target_role = counterpart_role(participant.role)
        if target_role is None:
            return
        await self.connections.broadcast(
            self.presence.handles_for_role(target_role),
            AvailableUsersMessage(users=self.availability.available_for(target_role)),
        )

    async def _notify_admins(self, message: WireModel):
        await self.connections.broadcast(self.availability.admin_handles(), message)

    def _observe(self):
        metrics.observe_registries(len(self.presence), len(self.calls))

    def _schedule_expiry(self, session: CallSession):
        if not self.invite_timeout or self.invite_timeout <= 0:
            return
        session.expiry_task = asyncio.create_task(self._expire_after(session.call_id, self.invite_timeout))

    async def _expire_after(self, call_id: str, delay: float):
        await asyncio.sleep(delay)
        try:
            await self.expire(call_id)
        except Exception:
            logger.exception(f"[Controller] Expiry of call {call_id} failed")

    # === Collaborator writes ===

    async def _lookup_user(self, user_id: str) -> Optional[DirectoryUser]:
        if self.directory is None:
            return None
        try:
            return await asyncio.wait_for(
                self.directory.find_user_by_id(user_id), timeout=self.collaborator_timeout
            )
        except asyncio.TimeoutError:
            logger.error(f"[Controller] Directory lookup for {user_id} timed out")
        except Exception as e:
            logger.error(f"[Controller] Directory lookup for {user_id} failed: {e}")
        return None

    def _persist(self, session: CallSession):
        if self.sink is None:
            return
        record = session.to_record()
        self._dispatch(
            f"call:{session.call_id}",
            lambda: self.sink.persist_call_outcome(record),
        )

    def _dispatch(self, key: str, make_write: Callable[[], Awaitable[Any]]):
        """Fire-and-forget a collaborator write, ordered after earlier writes with the same key."""
        previous = self._write_chains.get(key)
        task = asyncio.create_task(self._run_write(key, previous, make_write))
        self._write_chains[key] = task
        self._background.add(task)
        task.add_done_callback(lambda t: self._forget_write(key, t))

    async def _run_write(self, key: str, previous: Optional[asyncio.Task], make_write):
        if previous is not None and not previous.done():
            await asyncio.wait({previous})
        try:
            await asyncio.wait_for(make_write(), timeout=self.collaborator_timeout)
        except asyncio.TimeoutError:
            logger.error(f"[Controller] Write {key} timed out after {self.collaborator_timeout}s")
        except Exception as e:
            logger.error(f"[Controller] Write {key} failed: {e}")

    def _forget_write(self, key: str, task: asyncio.Task):
        self._background.discard(task)
        if self._write_chains.get(key) is task:
            del self._write_chains[key]

    async def drain(self):
        """Wait for every pending collaborator write."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def shutdown(self):
        for session in self.calls.all():
            session.cancel_expiry()
        await self.drain()
