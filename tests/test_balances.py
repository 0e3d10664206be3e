"""
Test suite for the balance store
"""

from bank_ledger.balances import BalanceStore


class TestBalanceStore:
    """Test lazy allocation and entry removal"""

    def test_missing_entry_reads_as_zero(self):
        store = BalanceStore()

        assert store.get(1) == 0.0
        assert not store.has_entry(1)
        assert 1 not in store
        assert len(store) == 0

    def test_set_and_remove(self):
        store = BalanceStore()
        store.set(1, 100.0)

        assert store.get(1) == 100.0
        assert 1 in store
        assert store.remove(1)
        assert not store.remove(1)
        assert store.get(1) == 0.0

    def test_items_snapshot_and_total(self):
        store = BalanceStore()
        store.set(2, 50.0)
        store.set(1, 25.0)

        items = store.items()
        store.set(3, 10.0)

        assert items == [(2, 50.0), (1, 25.0)]
        assert store.total() == 85.0
