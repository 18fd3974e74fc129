"""Turn-taking between the caller and the AI peer.

The AI peer rejects a ``response.create`` while another response is still
outstanding, so every request goes through :class:`TurnCoordinator`, which
keeps at most one request in flight and at most one queued behind it.
"""

from __future__ import annotations

import enum
import logging

from bridge.session import CallSession, ResponseRequest

LOGGER = logging.getLogger(__name__)

# A request arriving while another is outstanding replaces any request that is
# already queued; only the most recent one is issued after completion.
QUEUE_POLICY = "overwrite"


class TurnState(str, enum.Enum):
    IDLE = "idle"
    RESPONSE_REQUESTED = "response_requested"
    RESPONSE_ACTIVE = "response_active"


class TurnCoordinator:
    """Per-call state machine deciding when a response may be requested.

    Methods return the :class:`ResponseRequest` the caller must send to the AI
    peer, or ``None`` when nothing is to be sent.
    """

    def __init__(self, session: CallSession) -> None:
        self._session = session
        self._state = TurnState.IDLE

    @property
    def state(self) -> TurnState:
        return self._state

    def request_response(self, instructions: str | None = None) -> ResponseRequest | None:
        request = ResponseRequest(instructions=instructions)
        if self._state is TurnState.IDLE:
            self._session.queued_request = None
            self._state = TurnState.RESPONSE_REQUESTED
            return request

        if self._session.queued_request is not None:
            LOGGER.debug("[%s] Replacing queued response request", self._session.label)
        self._session.queued_request = request
        return None

    def response_created(self) -> None:
        if self._state is TurnState.IDLE:
            LOGGER.info("[%s] Response started without a pending request", self._session.label)
        self._state = TurnState.RESPONSE_ACTIVE
        self._session.ai_response_in_flight = True

    def response_done(self) -> ResponseRequest | None:
        self._session.ai_response_in_flight = False
        self._state = TurnState.IDLE
        return self._drain_queue()

    def request_failed(self) -> ResponseRequest | None:
        """Handle an AI error while a request is pending.

        A rejected request never produces ``response.created``, so the machine
        returns to ``IDLE`` and issues the queued request, if any.
        """

        if self._state is not TurnState.RESPONSE_REQUESTED:
            return None
        LOGGER.warning("[%s] Response request was rejected", self._session.label)
        self._state = TurnState.IDLE
        return self._drain_queue()

    def _drain_queue(self) -> ResponseRequest | None:
        queued = self._session.queued_request
        if queued is None:
            return None
        self._session.queued_request = None
        self._state = TurnState.RESPONSE_REQUESTED
        return queued
