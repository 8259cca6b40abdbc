"""Shared plumbing of the two saga roles: dispatch, routing and results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from draco.errors import ValidationError
from draco.messaging import SagaPublisher
from draco.models.events import Event, EventType
from draco.models.settings import DracoSettings
from draco.saga import Channel, Role, SagaState, Transition, handles
from draco.snapshots import ClientFactory, SnapshotService, service_for
from draco.utils.logger import get_logger
from draco.workflow import CopyWaitExecutionInput, CopyWaitStarter


@dataclass
class SagaResult:
    status: int
    state: SagaState
    emitted: Optional[Event] = None
    detail: Optional[str] = None

    def to_response(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"state": self.state.value}
        if self.emitted is not None:
            body["emitted"] = self.emitted.to_message()
        if self.detail:
            body["detail"] = self.detail
        return {"statusCode": self.status, "body": body}


class SagaParticipant:
    """Base for the producer and consumer roles.

    Subclasses register one method per inbound ``EventType`` and map each
    topic channel they publish on to a configured topic arn.
    """

    role: Role

    def __init__(
        self,
        settings: DracoSettings,
        clients: ClientFactory,
        *,
        request_id: Optional[str] = None,
        publisher: Optional[SagaPublisher] = None,
        starter: Optional[CopyWaitStarter] = None,
    ) -> None:
        self.settings = settings
        self.clients = clients
        self.request_id = request_id
        self._publisher = publisher
        self._publishers: Dict[Channel, SagaPublisher] = {}
        self._starter = starter
        self.log = get_logger(self.__class__.__module__, correlation_id=request_id)

    def handlers(self) -> Dict[EventType, Callable[[Event], SagaResult]]:
        raise NotImplementedError

    def topic_for(self, channel: Channel) -> str:
        raise NotImplementedError

    def handle(self, event: Event) -> SagaResult:
        handler = self.handlers().get(event.event_type) if handles(self.role, event.event_type) else None
        if handler is None:
            label = event.native_event_id or event.event_type.value
            self.log.info(f"Unhandled event: {label}", extra={"event_type": event.event_type.value})
            return SagaResult(200, SagaState.IGNORED, detail=f"Unhandled event: {label}")
        return handler(event)

    def client(self, name: str) -> Any:
        return self.clients(name, region_name=self.settings.region)

    def service(self, event: Event) -> SnapshotService:
        if event.snapshot_type is None:
            raise ValidationError(f"{event.event_type.value} without SnapshotType")
        return service_for(event.snapshot_type, self.clients, self.settings.region)

    def publisher(self, channel: Channel) -> SagaPublisher:
        if self._publisher is not None:
            return self._publisher
        if channel not in self._publishers:
            self._publishers[channel] = SagaPublisher(self.client("sns"), self.topic_for(channel))
        return self._publishers[channel]

    @property
    def starter(self) -> CopyWaitStarter:
        if self._starter is None:
            self._starter = CopyWaitStarter(self.client("stepfunctions"), self.settings.state_machine_arn)
        return self._starter

    def emit(
        self,
        transition: Transition,
        emitted: Optional[Event],
        *,
        watch_arn: Optional[str] = None,
        status: int = 200,
        detail: Optional[str] = None,
    ) -> SagaResult:
        """Send ``emitted`` on the transition's channel and report the new state."""
        extra = {
            "event_type": transition.trigger.value,
            "saga_state": transition.next_state.value,
        }
        if emitted is not None and transition.channel is Channel.COPY_WAIT:
            if not watch_arn:
                raise ValidationError("Copy wait requires the arn of the snapshot to watch")
            payload = CopyWaitExecutionInput(
                snapshot_type=emitted.snapshot_type,
                source_arn=watch_arn,
                event=emitted,
                poll_interval=self.settings.poll_interval,
                max_iterations=self.settings.max_poll_iterations,
            )
            self.starter.start(payload, name=self.request_id)
        elif emitted is not None and transition.channel is not Channel.NONE:
            self.publisher(transition.channel).publish(emitted)
        self.log.info(
            f"{self.role.value}: {transition.state.value} -> {transition.next_state.value}",
            extra=extra,
        )
        return SagaResult(status, transition.next_state, emitted, detail)

    @staticmethod
    def require(event: Event, field_name: str) -> str:
        value = getattr(event, field_name)
        if not value:
            raise ValidationError(f"{event.event_type.value} without {field_name}")
        return str(value)
