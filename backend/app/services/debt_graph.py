"""
Debt graph engine.

Turns the bills of one room into the list of net transfers that settle them:

1. every bill is split into per-payer shares (truncated to whole cents)
   owed to the bill owner,
2. the resulting directed multigraph is reduced by repeatedly finding a
   cycle and cancelling the amount of its closing edge around it,
3. parallel edges are merged per (payer, payee) pair.

The module is pure: it never touches the database and cannot fail for
well-formed input (non-empty payers, non-negative amounts).
"""
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_DOWN
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")


@dataclass(frozen=True)
class BillShare:
    """The parts of a bill the engine needs."""
    owner_id: int
    amount: Decimal
    payer_ids: Tuple[int, ...]
    include_owner: bool = True


@dataclass
class Transfer:
    """Represents a single transfer between users."""
    payer_id: int
    payee_id: int
    amount: Decimal


class _Edge:
    __slots__ = ("to", "amount")

    def __init__(self, to: int, amount: Decimal):
        self.to = to
        self.amount = amount

    def __repr__(self) -> str:
        return f"_Edge(to={self.to}, amount={self.amount})"


Graph = Dict[int, List[_Edge]]


def share_per_payer(amount: Decimal, num_payers: int, include_owner: bool) -> Decimal:
    """Split an amount evenly, truncating toward zero at two decimal places."""
    divisor = num_payers + (1 if include_owner else 0)
    return (Decimal(amount) / divisor).quantize(CENT, rounding=ROUND_DOWN)


def split_bill(bill: BillShare) -> List[Transfer]:
    """Expand a bill into one obligation per payer. The owner's own share is absorbed."""
    share = share_per_payer(bill.amount, len(bill.payer_ids), bill.include_owner)
    return [
        Transfer(payer_id=payer_id, payee_id=bill.owner_id, amount=share)
        for payer_id in bill.payer_ids
        if payer_id != bill.owner_id
    ]


def build_graph(transfers: Iterable[Transfer]) -> Graph:
    graph: Graph = {}
    for t in transfers:
        if t.amount <= ZERO:
            continue
        graph.setdefault(t.payer_id, []).append(_Edge(t.payee_id, t.amount))
        graph.setdefault(t.payee_id, [])
    return graph


def _remove_cycle(
    node: int,
    graph: Graph,
    on_path: Set[int],
    done: Set[int],
) -> Optional[Tuple[Decimal, Optional[int]]]:
    """
    Depth-first search from ``node`` for a cycle through the current path.

    Returns None when no cycle is reachable. Otherwise the graph has been
    modified and the result is ``(amount, stop)``: ``amount`` is what the
    closing edge carried and ``stop`` is the vertex that closes the cycle,
    or None once the cycle has been fully unwound.
    """
    edges = graph.get(node, [])
    for i, edge in enumerate(edges):
        if edge.to in on_path:
            # closing edge: drop it and unwind its amount around the cycle
            logger.debug("Cycle detected: %s -> %s", node, edge.to)
            del edges[i]
            return edge.amount, edge.to

        if edge.to in done:
            continue

        on_path.add(edge.to)
        result = _remove_cycle(edge.to, graph, on_path, done)
        on_path.discard(edge.to)

        if result is None:
            continue

        amount, stop = result
        if stop is None:
            # resolved deeper down, indexes here may be stale
            return result

        remaining = edge.amount - amount
        if remaining > ZERO:
            edge.amount = remaining
        elif remaining < ZERO:
            # the cancelled debt dominates, flip the direction
            del edges[i]
            graph.setdefault(edge.to, []).append(_Edge(node, -remaining))
        else:
            del edges[i]

        if stop == node:
            return amount, None
        return amount, stop

    done.add(node)
    return None


def eliminate_cycles(graph: Graph) -> Graph:
    """Cancel cycles in place until a full pass over every vertex finds none."""
    found = True
    while found:
        found = False
        for start in list(graph):
            while _remove_cycle(start, graph, {start}, set()) is not None:
                found = True
    return graph


def merge_edges(graph: Graph) -> List[Transfer]:
    """Combine parallel edges per (payer, payee), dropping zero amounts."""
    totals: Dict[Tuple[int, int], Decimal] = {}
    for payer_id, edges in graph.items():
        for edge in edges:
            key = (payer_id, edge.to)
            totals[key] = totals.get(key, ZERO) + edge.amount
    return [
        Transfer(payer_id=payer_id, payee_id=payee_id, amount=amount.quantize(CENT))
        for (payer_id, payee_id), amount in totals.items()
        if amount > ZERO and payer_id != payee_id
    ]


def compute_transfers(bills: Sequence[BillShare]) -> List[Transfer]:
    """Bills of one room -> minimal acyclic list of net transfers."""
    obligations: List[Transfer] = []
    for bill in bills:
        obligations.extend(split_bill(bill))

    for t in obligations:
        logger.debug("Before %s -> %s : %s", t.payer_id, t.payee_id, t.amount)

    graph = eliminate_cycles(build_graph(obligations))
    transfers = merge_edges(graph)

    for t in transfers:
        logger.debug("After %s -> %s : %s", t.payer_id, t.payee_id, t.amount)
    return transfers


def net_balances(transfers: Iterable[Transfer]) -> Dict[int, Decimal]:
    """Signed balance per user: positive means the user is owed money."""
    balances: Dict[int, Decimal] = {}
    for t in transfers:
        balances[t.payer_id] = balances.get(t.payer_id, ZERO) - t.amount
        balances[t.payee_id] = balances.get(t.payee_id, ZERO) + t.amount
    return balances
