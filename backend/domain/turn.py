"""
Turn selection and ephemeral per-turn state.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from .enums import TurnPolicy


class TurnSelection:
    """
    Ordered set of agent ids targeted by the next turn.

    Order is the order in which ids were added. Under the sequential policy
    it is the invocation order. Removing and re-adding an id moves it to
    the end.
    """

    def __init__(self, agent_ids: Optional[Iterable[str]] = None):
        self._ids: List[str] = []
        for agent_id in agent_ids or ():
            self.add(agent_id)

    def add(self, agent_id: str) -> None:
        if agent_id not in self._ids:
            self._ids.append(agent_id)

    def remove(self, agent_id: str) -> None:
        if agent_id in self._ids:
            self._ids.remove(agent_id)

    def update(self, agent_ids: Iterable[str]) -> None:
        """
        Replace the selection with a new set of ids.

        Ids that stay selected keep their previous relative order; newly
        selected ids are appended in the order given.
        """
        wanted = list(dict.fromkeys(agent_ids))
        kept = [agent_id for agent_id in self._ids if agent_id in wanted]
        added = [agent_id for agent_id in wanted if agent_id not in kept]
        self._ids = kept + added

    def clear(self) -> None:
        self._ids = []

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(self._ids)

    def copy(self) -> "TurnSelection":
        return TurnSelection(self._ids)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._ids))

    def __len__(self) -> int:
        return len(self._ids)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TurnSelection):
            return self._ids == other._ids
        return NotImplemented

    def __repr__(self) -> str:
        return f"TurnSelection({self._ids!r})"


@dataclass
class TurnState:
    """
    Ephemeral state of the current turn. Never persisted.

    Attributes:
        policy: Policy the current turn runs under
        targets: Agent ids targeted by the current turn, in order
        responded_this_turn: Agents that reached a terminal outcome this turn
        in_flight: Per-agent invocation lock
        loading: Per-agent loading flag, observable by consumers
    """

    policy: TurnPolicy = TurnPolicy.BROADCAST
    targets: Tuple[str, ...] = ()
    responded_this_turn: Set[str] = field(default_factory=set)
    in_flight: Dict[str, bool] = field(default_factory=dict)
    loading: Dict[str, bool] = field(default_factory=dict)

    def reset(self, targets: Iterable[str], policy: TurnPolicy) -> None:
        """Start a new turn for the given targets."""
        self.policy = policy
        self.targets = tuple(dict.fromkeys(targets))
        self.responded_this_turn = set()
        self.in_flight = {}
        self.loading = {}

    def is_eligible(self, agent_id: str) -> bool:
        return (
            agent_id not in self.responded_this_turn
            and not self.in_flight.get(agent_id, False)
            and not self.loading.get(agent_id, False)
        )

    def acquire(self, agent_id: str) -> None:
        self.in_flight[agent_id] = True
        self.loading[agent_id] = True

    def release(self, agent_id: str) -> None:
        self.in_flight.pop(agent_id, None)
        self.loading.pop(agent_id, None)

    def mark_responded(self, agent_id: str) -> None:
        self.responded_this_turn.add(agent_id)

    def is_in_flight(self, agent_id: str) -> bool:
        return self.in_flight.get(agent_id, False)

    def any_loading(self) -> bool:
        return any(self.loading.values())

    def loading_agents(self) -> List[str]:
        return [agent_id for agent_id, flag in self.loading.items() if flag]
