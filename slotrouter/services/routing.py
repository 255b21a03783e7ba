"""
Host routing: picks exactly one host for a new booking.

Decision pipeline, evaluated once per booking:

1. routing disabled              -> no host, ``disabled``
2. no assignees                  -> event creator, ``creator_fallback``
3. filter hosts by availability  -> ``NoHostAvailableError`` if none is free
4. exactly one free host         -> that host, ``single_available``
5. routing instructions present  -> ask the AI decision service
6. otherwise, or if the AI fails -> configured fallback strategy

AI failures never surface to the caller; they only move the decision on to
the fallback strategy.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import pendulum
from pendulum import DateTime

from ..domain.exceptions import AIRoutingError, NoHostAvailableError
from ..domain.models import Event, RoutingDecision, RoutingFallback, RoutingMethod, User
from ..domain.routing_prompt import build_routing_prompt
from ..domain.slot_calculator import to_utc
from .protocols import (
    AIDecisionClientProtocol,
    AvailabilityOracleProtocol,
    BookingRepositoryProtocol,
)

logger = logging.getLogger(__name__)


class RoutingEngine:
    """
    Assigns a booking to one host among the event's assignees.
    """

    def __init__(
        self,
        repository: BookingRepositoryProtocol,
        oracle: AvailabilityOracleProtocol,
        ai_client: Optional[AIDecisionClientProtocol] = None,
        clock: Optional[Callable[[], DateTime]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._repository = repository
        self._oracle = oracle
        self._ai_client = ai_client
        self._clock = clock or pendulum.now
        self._rng = rng or random.Random()

    def route(
        self,
        event: Event,
        start: datetime,
        end: datetime,
        form_data: Optional[Mapping[str, Any]] = None,
    ) -> RoutingDecision:
        """
        Select the host for a booking of ``event`` at ``[start, end)``.

        Raises:
            NoHostAvailableError: If none of the event's hosts is free
        """
        if not event.config.routing_enabled:
            return self._decide(event, RoutingDecision(host=None, method=RoutingMethod.DISABLED))

        hosts = event.host_pool()
        if not hosts:
            return self._decide(
                event,
                RoutingDecision(host=event.creator, method=RoutingMethod.CREATOR_FALLBACK),
            )

        start_utc = to_utc(start)
        end_utc = to_utc(end)
        available = [host for host in hosts if self._oracle.is_available(host, start_utc, end_utc)]

        if not available:
            raise NoHostAvailableError("No team members available at selected time")

        if len(available) == 1:
            return self._decide(
                event,
                RoutingDecision(host=available[0], method=RoutingMethod.SINGLE_AVAILABLE),
            )

        instructions = (event.config.routing_instructions or "").strip()
        if instructions and self._ai_client is not None:
            decision = self._route_with_ai(event, available, form_data or {}, start_utc)
            if decision is not None:
                return self._decide(event, decision)

        return self._decide(event, self._apply_fallback(event.config.routing_fallback, available))

    def _route_with_ai(
        self,
        event: Event,
        candidates: Sequence[User],
        form_data: Mapping[str, Any],
        requested_time: DateTime,
    ) -> Optional[RoutingDecision]:
        prompt = build_routing_prompt(
            form_data,
            candidates,
            event.config.routing_instructions or "",
            event_name=event.name,
            requested_time=requested_time,
        )

        try:
            response = self._ai_client.choose(prompt)
        except AIRoutingError as exc:
            logger.warning("AI routing failed for event %s: %s", event.id, exc)
            return None

        if not isinstance(response, Mapping):
            logger.warning("AI routing for event %s returned %r instead of an object", event.id, response)
            return None

        chosen = self._match_candidate(candidates, response.get("assignee_id"))
        if chosen is None:
            logger.warning(
                "AI routing for event %s returned unknown assignee %r",
                event.id, response.get("assignee_id"),
            )
            return None

        return RoutingDecision(
            host=chosen,
            method=RoutingMethod.AI_ROUTING,
            reason=response.get("reason"),
            raw_response=dict(response),
        )

    @staticmethod
    def _match_candidate(candidates: Sequence[User], assignee_id: Any) -> Optional[User]:
        # Only whole numbers: an int, or a string of digits
        if isinstance(assignee_id, bool):
            return None
        if isinstance(assignee_id, int):
            wanted = assignee_id
        elif isinstance(assignee_id, str) and assignee_id.strip().isdigit():
            wanted = int(assignee_id.strip())
        else:
            return None

        for user in candidates:
            if user.id == wanted:
                return user
        return None

    def _apply_fallback(self, strategy: RoutingFallback, candidates: Sequence[User]) -> RoutingDecision:
        if strategy == RoutingFallback.LEAST_BUSY:
            return RoutingDecision(
                host=self._pick_least_busy(candidates),
                method=RoutingMethod.LEAST_BUSY_FALLBACK,
            )

        if strategy == RoutingFallback.RANDOM:
            return RoutingDecision(host=self._rng.choice(list(candidates)), method=RoutingMethod.RANDOM)

        return RoutingDecision(host=self._pick_round_robin(candidates), method=RoutingMethod.ROUND_ROBIN)

    def _pick_round_robin(self, candidates: Sequence[User]) -> User:
        """
        Host whose latest assignment was created longest ago.

        Hosts never assigned sort first; ties keep pool order.
        """
        def last_assigned(user: User) -> float:
            created = self._repository.last_assigned_at(user.id)
            return created.timestamp() if created else 0.0

        return sorted(candidates, key=last_assigned)[0]

    def _pick_least_busy(self, candidates: Sequence[User]) -> User:
        """Host with the fewest bookings in the current Monday-Sunday week."""
        now = self._clock()
        week_start = now.start_of("week")
        week_end = now.end_of("week")

        counts: List[int] = [
            self._repository.count_assigned_between(user.id, week_start, week_end)
            for user in candidates
        ]
        return candidates[counts.index(min(counts))]

    @staticmethod
    def _decide(event: Event, decision: RoutingDecision) -> RoutingDecision:
        result: Dict[str, Any] = decision.to_result()
        logger.info(
            "Routing for event %s: %s -> %s",
            event.id, result["routing_method"], result["assigned_to"],
            extra={
                "event_id": event.id,
                "routing_method": result["routing_method"],
                "assigned_to": result["assigned_to"],
            },
        )
        return decision
