"""
Tests for the debt graph engine.
"""
import random
from decimal import Decimal

from app.services.debt_graph import (
    BillShare, Transfer, build_graph, compute_transfers, eliminate_cycles,
    merge_edges, net_balances, share_per_payer, split_bill
)


def as_tuples(transfers):
    return sorted((t.payer_id, t.payee_id, t.amount) for t in transfers)


def has_cycle(transfers):
    graph = {}
    for t in transfers:
        graph.setdefault(t.payer_id, set()).add(t.payee_id)

    visiting, visited = set(), set()

    def visit(node):
        if node in visiting:
            return True
        if node in visited:
            return False
        visiting.add(node)
        if any(visit(n) for n in graph.get(node, ())):
            return True
        visiting.discard(node)
        visited.add(node)
        return False

    return any(visit(n) for n in list(graph))


def test_share_truncates_to_cents():
    assert share_per_payer(Decimal("100.00"), 2, True) == Decimal("33.33")
    assert share_per_payer(Decimal("60.00"), 2, False) == Decimal("30.00")
    assert share_per_payer(Decimal("0.05"), 2, True) == Decimal("0.01")


def test_split_bill_skips_owner_as_payer():
    bill = BillShare(owner_id=1, amount=Decimal("90"), payer_ids=(1, 2, 3), include_owner=False)
    assert as_tuples(split_bill(bill)) == [(2, 1, Decimal("30.00")), (3, 1, Decimal("30.00"))]


def test_two_payer_split_with_owner_included():
    bills = [BillShare(owner_id=1, amount=Decimal("100.00"), payer_ids=(2, 3), include_owner=True)]
    assert as_tuples(compute_transfers(bills)) == [
        (2, 1, Decimal("33.33")),
        (3, 1, Decimal("33.33")),
    ]


def test_exclude_owner():
    bills = [BillShare(owner_id=1, amount=Decimal("60.00"), payer_ids=(2, 3), include_owner=False)]
    assert as_tuples(compute_transfers(bills)) == [
        (2, 1, Decimal("30.00")),
        (3, 1, Decimal("30.00")),
    ]


def test_two_way_debt_cancels():
    bills = [
        BillShare(owner_id=1, amount=Decimal("100"), payer_ids=(2,), include_owner=True),
        BillShare(owner_id=2, amount=Decimal("50"), payer_ids=(1,), include_owner=True),
    ]
    assert as_tuples(compute_transfers(bills)) == [(2, 1, Decimal("25.00"))]


def test_three_way_cycle_is_removed():
    # 1 -> 2 : 30, 2 -> 3 : 20, 3 -> 1 : 10
    graph = build_graph([
        Transfer(1, 2, Decimal("30")),
        Transfer(2, 3, Decimal("20")),
        Transfer(3, 1, Decimal("10")),
    ])
    transfers = merge_edges(eliminate_cycles(graph))
    assert as_tuples(transfers) == [(1, 2, Decimal("20.00")), (2, 3, Decimal("10.00"))]


def test_cycle_with_direction_flip():
    # 1 -> 2 : 10, 2 -> 3 : 50, 3 -> 1 : 30. Cancelling 30 around flips 1 -> 2.
    transfers = merge_edges(eliminate_cycles(build_graph([
        Transfer(1, 2, Decimal("10")),
        Transfer(2, 3, Decimal("50")),
        Transfer(3, 1, Decimal("30")),
    ])))
    assert as_tuples(transfers) == [(2, 1, Decimal("20.00")), (2, 3, Decimal("20.00"))]
    assert net_balances(transfers) == {1: Decimal("20.00"), 2: Decimal("-40.00"), 3: Decimal("20.00")}
    assert not has_cycle(transfers)


def test_parallel_edges_are_merged():
    bills = [
        BillShare(owner_id=1, amount=Decimal("20"), payer_ids=(2,), include_owner=False),
        BillShare(owner_id=1, amount=Decimal("5"), payer_ids=(2,), include_owner=False),
    ]
    assert as_tuples(compute_transfers(bills)) == [(2, 1, Decimal("25.00"))]


def test_zero_amount_bill_produces_nothing():
    bills = [BillShare(owner_id=1, amount=Decimal("0"), payer_ids=(2, 3), include_owner=True)]
    assert compute_transfers(bills) == []


def test_owner_only_bill_produces_nothing():
    bills = [BillShare(owner_id=1, amount=Decimal("40"), payer_ids=(1,), include_owner=True)]
    assert compute_transfers(bills) == []


def test_random_rooms_conserve_balances_and_stay_acyclic():
    rng = random.Random(20240601)
    for _ in range(200):
        users = list(range(1, rng.randint(2, 7)))
        bills = []
        for _ in range(rng.randint(1, 8)):
            owner = rng.choice(users)
            payers = tuple(rng.sample(users, rng.randint(1, len(users))))
            amount = Decimal(rng.randint(0, 50000)) / 100
            bills.append(BillShare(owner, amount, payers, rng.random() < 0.5))

        obligations = [t for b in bills for t in split_bill(b)]
        expected = net_balances(obligations)
        transfers = compute_transfers(bills)
        actual = net_balances(transfers)

        for user in set(expected) | set(actual):
            diff = abs(expected.get(user, Decimal(0)) - actual.get(user, Decimal(0)))
            assert diff <= Decimal("0.01") * len(bills)

        assert all(t.payer_id != t.payee_id for t in transfers)
        assert all(t.amount > 0 for t in transfers)
        assert not has_cycle(transfers)
        pairs = [(t.payer_id, t.payee_id) for t in transfers]
        assert len(pairs) == len(set(pairs))
