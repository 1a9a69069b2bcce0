"""
Aggregation engine - core predicate logic for the logic node.

Keeps the last-known value of one attribute per device, evaluates the
ALL/ANY predicate over the whole configured device set, and detects flips
of the committed result.
"""

import logging
from datetime import datetime, UTC
from typing import Any, Dict, Iterable, List, Optional

from .models import (
    AggregationState,
    EvaluationResult,
    LogicMode,
)

logger = logging.getLogger(__name__)


class AggregationEngine:
    """
    Evaluates a boolean predicate over a fixed device set.

    States:
    - Uninitialized: nothing evaluated yet (logic_state is None)
    - Evaluating: logic_state holds the committed boolean

    Only a change of the committed value counts as a flip; every other
    evaluation leaves last_flip alone.
    """

    def __init__(
        self,
        device_ids: Iterable[Any],
        target_value: Any,
        mode: LogicMode = LogicMode.ALL,
        attribute: str = "switch",
    ) -> None:
        self._device_ids = [str(device_id) for device_id in device_ids]
        self.target_value = target_value
        self.mode = mode
        self.attribute = attribute
        self.state = AggregationState()

    @property
    def device_ids(self) -> List[str]:
        return list(self._device_ids)

    @property
    def logic_state(self) -> Optional[bool]:
        return self.state.logic_state

    @property
    def last_flip(self) -> Optional[datetime]:
        return self.state.last_flip

    def tracks(self, device_id: Any) -> bool:
        """Check if a device is in the configured set."""
        return device_id is not None and str(device_id) in self._device_ids

    # =========================================================================
    # Predicate
    # =========================================================================

    def matches_target(self, value: Any) -> bool:
        """
        Check one device value against the target.

        Values compare exactly. Lock states such as "unlocked with timeout"
        and "unknown" are targets of their own, never variants of
        "unlocked" or "locked".
        """
        if value is None:
            return False
        return value == self.target_value

    def compute(self) -> bool:
        """Compute the predicate over the current device values (no commit)."""
        if not self._device_ids:
            return False

        values = [self.state.device_states.get(device_id) for device_id in self._device_ids]
        if self.mode == LogicMode.ALL:
            return all(self.matches_target(v) for v in values)
        return any(self.matches_target(v) for v in values)

    # =========================================================================
    # State updates
    # =========================================================================

    def seed(self, values: Dict[Any, Any]) -> EvaluationResult:
        """
        Replace device values with the cache's and commit without a flip.

        Used on startup and on hub system-ready: the result is published as
        status but never treated as an edge.

        Args:
            values: Device ID -> attribute value. Tracked devices that are
                absent or None lose their previous value.
        """
        current = {str(device_id): value for device_id, value in values.items()}
        for device_id in self._device_ids:
            value = current.get(device_id)
            if value is None:
                self.state.device_states.pop(device_id, None)
            else:
                self.state.device_states[device_id] = value

        previous = self.state.logic_state
        self.state.logic_state = self.compute()
        logger.debug(
            f"Seeded {len(self.state.device_states)} device values, "
            f"logic state {self.state.logic_state}"
        )
        return EvaluationResult(
            logic_state=self.state.logic_state,
            previous_state=previous,
            flipped=False,
        )

    def update(
        self,
        device_id: Any,
        value: Any,
        now: Optional[datetime] = None,
    ) -> Optional[EvaluationResult]:
        """
        Record a device's new value and re-evaluate.

        Args:
            device_id: Device that changed
            value: New attribute value
            now: Current time (for testing)

        Returns:
            Evaluation result, or None if the device is not tracked
        """
        if not self.tracks(device_id):
            return None

        self.state.device_states[str(device_id)] = value
        return self.evaluate(now)

    def evaluate(self, now: Optional[datetime] = None) -> EvaluationResult:
        """
        Recompute the predicate and commit it.

        Args:
            now: Current time (for testing)
        """
        previous = self.state.logic_state
        new_state = self.compute()

        # The first evaluation from Uninitialized is not an edge
        flipped = previous is not None and new_state != previous
        if flipped:
            self.state.last_flip = now or datetime.now(UTC)
            logger.debug(f"Logic state flipped {previous} -> {new_state}")

        self.state.logic_state = new_state
        return EvaluationResult(
            logic_state=new_state,
            previous_state=previous,
            flipped=flipped,
        )

    # =========================================================================
    # State Export
    # =========================================================================

    def export_state(self) -> Dict[str, Any]:
        """Export engine state for diagnostics."""
        return {
            "version": 1,
            "mode": self.mode.value,
            "attribute": self.attribute,
            "target_value": self.target_value,
            "device_states": dict(self.state.device_states),
            "logic_state": self.state.logic_state,
            "last_flip": self.state.last_flip.isoformat() if self.state.last_flip else None,
        }
