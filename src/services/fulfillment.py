"""Fulfillment workflow: simulate, adjust, create/update, pack, finalize.

FulfillmentController drives one FulfillmentSession through its stages:

    SIMULATING -> READY_TO_SUBMIT -> SUBMITTING -> PACKING
        -> FINALIZING -> FINALIZED

Remote failures never escape the controller. They are recorded on
``session.last_error``, the session falls back to the previous stable
stage (SUBMITTING -> READY_TO_SUBMIT, FINALIZING -> PACKING, a failed
simulation stays in SIMULATING) and the operation returns False.

Calling an operation in a stage that does not allow it is a caller bug
and raises InvalidTransitionError immediately.

Every change publishes an immutable session snapshot to subscribers.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Protocol

from src.errors import InvalidTransitionError, OrderUpError
from src.services import picklist
from src.services.fulfillment_api import FulfillmentDraft
from src.services.picklist import LocationType, PicklistLine

logger = logging.getLogger(__name__)


class FulfillmentStage(str, Enum):
    """Where a fulfillment session is in its lifecycle."""

    SIMULATING = "simulating"
    READY_TO_SUBMIT = "ready_to_submit"
    SUBMITTING = "submitting"
    PACKING = "packing"
    FINALIZING = "finalizing"
    FINALIZED = "finalized"


# Valid stage transitions for the fulfillment lifecycle
VALID_TRANSITIONS: dict[FulfillmentStage, list[FulfillmentStage]] = {
    FulfillmentStage.SIMULATING: [FulfillmentStage.READY_TO_SUBMIT],
    FulfillmentStage.READY_TO_SUBMIT: [FulfillmentStage.SUBMITTING],
    FulfillmentStage.SUBMITTING: [
        FulfillmentStage.PACKING,
        FulfillmentStage.READY_TO_SUBMIT,
    ],
    FulfillmentStage.PACKING: [FulfillmentStage.FINALIZING],
    FulfillmentStage.FINALIZING: [
        FulfillmentStage.FINALIZED,
        FulfillmentStage.PACKING,
    ],
    FulfillmentStage.FINALIZED: [],  # terminal
}


def can_transition(current: FulfillmentStage, target: FulfillmentStage) -> bool:
    return target in VALID_TRANSITIONS.get(current, [])


@dataclass(frozen=True)
class FulfillmentSession:
    """Snapshot of one fulfillment workflow."""

    order_ids: frozenset[str]
    location_id: str
    location_type: LocationType
    lines: tuple[PicklistLine, ...] = ()
    fulfillment_id: str | None = None
    stage: FulfillmentStage = FulfillmentStage.SIMULATING
    last_error: OrderUpError | None = field(default=None, compare=False)

    @property
    def can_submit(self) -> bool:
        return (
            self.stage == FulfillmentStage.READY_TO_SUBMIT
            and picklist.has_picked_lines(self.lines)
        )

    @property
    def all_picked(self) -> bool:
        return picklist.all_lines_picked(self.lines)

    @property
    def picked_count(self) -> int:
        return picklist.picked_count(self.lines)

    @property
    def is_finalized(self) -> bool:
        return self.stage == FulfillmentStage.FINALIZED

    def bins(self) -> dict[str, list[PicklistLine]]:
        return picklist.group_lines_by_bin(self.lines)


class FulfillmentBackend(Protocol):
    """Remote operations the controller needs. FulfillmentApi provides them."""

    async def simulate_fulfillment(
        self, order_ids: list[str], location_id: str, location_type: LocationType
    ) -> tuple[PicklistLine, ...]:
        ...

    async def create_fulfillment(
        self, order_ids: Iterable[str], location_id: str, lines: Iterable[PicklistLine]
    ) -> str:
        ...

    async def update_fulfillment(
        self, fulfillment_id: str, lines: Iterable[PicklistLine]
    ) -> str:
        ...

    async def get_fulfillment(self, fulfillment_id: str) -> FulfillmentDraft:
        ...

    async def finalize_fulfillment(self, fulfillment_id: str) -> None:
        ...


SessionListener = Callable[[FulfillmentSession], None]


class FulfillmentController:
    """State machine over a single FulfillmentSession.

    Example:
        controller = FulfillmentController(FulfillmentApi(gateway))
        await controller.start(["1001", "1002"], "LOC-1", LocationType.WAREHOUSE)
        controller.adjust_picked_quantity(line_id, value=2)
        if await controller.submit():
            await controller.finalize()
    """

    def __init__(self, backend: FulfillmentBackend) -> None:
        self._backend = backend
        self._session: FulfillmentSession | None = None
        self._listeners: list[SessionListener] = []
        self._epoch = 0  # bumped whenever a new session replaces the old one
        self._simulating_epoch: int | None = None  # epoch of the running simulation

    @property
    def session(self) -> FulfillmentSession | None:
        return self._session

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, session: FulfillmentSession) -> FulfillmentSession:
        self._session = session
        for listener in list(self._listeners):
            try:
                listener(session)
            except Exception as e:
                logger.error(
                    "Session listener %s failed: %s",
                    getattr(listener, "__name__", type(listener).__name__),
                    e,
                )
        return session

    def _require_session(self, action: str) -> FulfillmentSession:
        if self._session is None:
            raise InvalidTransitionError.for_action(action, "not started")
        return self._session

    def _require_stage(self, action: str, *stages: FulfillmentStage) -> FulfillmentSession:
        session = self._require_session(action)
        if session.stage not in stages:
            raise InvalidTransitionError.for_action(action, session.stage.value)
        return session

    def _ensure_not_busy(self, action: str) -> None:
        if self._session and self._session.stage in (
            FulfillmentStage.SUBMITTING,
            FulfillmentStage.FINALIZING,
        ):
            raise InvalidTransitionError.for_action(action, self._session.stage.value)

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    async def start(
        self,
        order_ids: Iterable[str],
        location_id: str,
        location_type: LocationType,
    ) -> bool:
        """Begin a new session for the selected orders and location.

        Replaces any previous session that is not mid-request.

        Returns:
            True if the simulation succeeded (stage READY_TO_SUBMIT).

        Raises:
            InvalidTransitionError: If ``order_ids`` is empty or a submit
                or finalize request is in flight.
        """
        self._ensure_not_busy("start a fulfillment")
        ids = frozenset(order_ids)
        if not ids:
            raise InvalidTransitionError.no_orders()

        self._epoch += 1
        self._publish(
            FulfillmentSession(
                order_ids=ids,
                location_id=location_id,
                location_type=LocationType(location_type),
            )
        )
        return await self._run_simulation()

    async def resume(
        self,
        fulfillment_id: str,
        order_ids: Iterable[str],
        location_id: str,
        location_type: LocationType,
    ) -> bool:
        """Re-open an existing draft fulfillment for editing.

        Loads the draft's lines (with their recorded picked quantities)
        instead of simulating. A later ``submit`` updates this draft
        rather than creating a new one.

        Returns:
            True if the draft loaded (stage READY_TO_SUBMIT).
        """
        self._ensure_not_busy("resume a fulfillment")
        ids = frozenset(order_ids)
        if not ids:
            raise InvalidTransitionError.no_orders()

        self._epoch += 1
        self._publish(
            FulfillmentSession(
                order_ids=ids,
                location_id=location_id,
                location_type=LocationType(location_type),
                fulfillment_id=fulfillment_id,
            )
        )
        return await self._run_simulation()

    async def retry_simulation(self) -> bool:
        """Repeat a failed simulation or draft load.

        Returns:
            True if the simulation succeeded. False if it failed, or if a
            simulation for this session is still running (nothing is sent).
        """
        self._require_stage("retry the simulation", FulfillmentStage.SIMULATING)
        if self._simulating_epoch == self._epoch:
            logger.debug("Simulation already running; retry ignored")
            return False
        return await self._run_simulation()

    async def _run_simulation(self) -> bool:
        session = self._require_session("simulate")
        epoch = self._epoch
        self._simulating_epoch = epoch
        try:
            return await self._simulate(session, epoch)
        finally:
            if self._simulating_epoch == epoch:
                self._simulating_epoch = None

    async def _simulate(self, session: FulfillmentSession, epoch: int) -> bool:
        try:
            if session.fulfillment_id:
                draft = await self._backend.get_fulfillment(session.fulfillment_id)
                lines = draft.lines
            else:
                lines = await picklist.simulate(
                    self._backend,
                    session.order_ids,
                    session.location_id,
                    session.location_type,
                )
        except OrderUpError as e:
            if epoch != self._epoch:
                return False
            logger.warning("Simulation failed for %s: %s", sorted(session.order_ids), e)
            self._publish(replace(self._session, last_error=e))
            return False

        if epoch != self._epoch:
            logger.debug("Dropping simulation result for a replaced session")
            return False

        self._publish(
            self._advance(
                self._session,
                FulfillmentStage.READY_TO_SUBMIT,
                lines=lines,
                last_error=None,
            )
        )
        return True

    def _advance(
        self, session: FulfillmentSession, target: FulfillmentStage, **changes
    ) -> FulfillmentSession:
        """Return ``session`` moved to ``target``, enforcing VALID_TRANSITIONS."""
        if not can_transition(session.stage, target):
            raise InvalidTransitionError.for_action(
                f"move to {target.value}", session.stage.value
            )
        return replace(session, stage=target, **changes)

    # ------------------------------------------------------------------
    # Picking
    # ------------------------------------------------------------------

    def adjust_picked_quantity(
        self, line_id: str, value: int | None = None, delta: int | None = None
    ) -> FulfillmentSession:
        """Set (``value``) or nudge (``delta``) a line's picked quantity.

        The result is clamped into ``[0, required_quantity]``.
        """
        session = self._require_stage(
            "adjust quantities", FulfillmentStage.READY_TO_SUBMIT
        )
        lines = picklist.adjust_picked_quantity(
            session.lines, line_id, value=value, delta=delta
        )
        return self._publish(replace(session, lines=lines))

    def mark_all_picked(self) -> FulfillmentSession:
        session = self._require_stage(
            "adjust quantities", FulfillmentStage.READY_TO_SUBMIT
        )
        return self._publish(replace(session, lines=picklist.mark_all_picked(session.lines)))

    # ------------------------------------------------------------------
    # Submit and finalize
    # ------------------------------------------------------------------

    async def submit(self) -> bool:
        """Create the fulfillment, or update it if it already has an id.

        Partial picks are allowed; at least one line must be picked.

        Returns:
            True on success (stage PACKING, fulfillment_id recorded).
            False on a remote failure (stage READY_TO_SUBMIT, lines kept).

        Raises:
            InvalidTransitionError: Wrong stage, or nothing picked.
        """
        session = self._require_stage("submit", FulfillmentStage.READY_TO_SUBMIT)
        if not picklist.has_picked_lines(session.lines):
            raise InvalidTransitionError.nothing_picked()

        session = self._publish(
            self._advance(session, FulfillmentStage.SUBMITTING, last_error=None)
        )
        try:
            if session.fulfillment_id:
                fulfillment_id = await self._backend.update_fulfillment(
                    session.fulfillment_id, session.lines
                )
            else:
                fulfillment_id = await self._backend.create_fulfillment(
                    session.order_ids, session.location_id, session.lines
                )
        except OrderUpError as e:
            logger.warning("Fulfillment submit failed: %s", e)
            self._publish(
                self._advance(session, FulfillmentStage.READY_TO_SUBMIT, last_error=e)
            )
            return False

        self._publish(
            self._advance(
                session, FulfillmentStage.PACKING, fulfillment_id=fulfillment_id
            )
        )
        return True

    async def finalize(self) -> bool:
        """Finalize packing for the recorded fulfillment id.

        Returns:
            True on success (stage FINALIZED), False on a remote failure
            (stage PACKING).
        """
        session = self._require_stage("finalize", FulfillmentStage.PACKING)
        if not session.fulfillment_id:
            raise InvalidTransitionError.for_action("finalize", "missing a fulfillment id")

        session = self._publish(
            self._advance(session, FulfillmentStage.FINALIZING, last_error=None)
        )
        try:
            await self._backend.finalize_fulfillment(session.fulfillment_id)
        except OrderUpError as e:
            logger.warning("Finalize failed for %s: %s", session.fulfillment_id, e)
            self._publish(self._advance(session, FulfillmentStage.PACKING, last_error=e))
            return False

        logger.info("Fulfillment %s finalized", session.fulfillment_id)
        self._publish(self._advance(session, FulfillmentStage.FINALIZED))
        return True
