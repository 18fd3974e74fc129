from __future__ import annotations

from dataclasses import dataclass, field

from config.tenants import TenantProfile


@dataclass(frozen=True)
class ResponseRequest:
    """A pending ``response.create`` for the AI peer."""

    instructions: str | None = None


@dataclass
class CallSession:
    """Mutable state for one bridged call.

    Only the owning bridge's event loop touches an instance; nothing here is
    shared between calls.
    """

    tenant: TenantProfile
    call_sid: str | None = None
    stream_sid: str | None = None
    ai_response_in_flight: bool = False
    queued_request: ResponseRequest | None = None
    turn_text: list[str] = field(default_factory=list)

    frames_in: int = 0
    frames_out: int = 0
    bookings: int = 0

    @property
    def label(self) -> str:
        return self.stream_sid or self.call_sid or "pending"

    def append_text(self, fragment: str) -> None:
        if fragment:
            self.turn_text.append(fragment)

    def take_turn_text(self) -> str:
        """Return the accumulated turn text and clear the buffer."""

        text = "".join(self.turn_text)
        self.turn_text.clear()
        return text
