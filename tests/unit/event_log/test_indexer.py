import decimal
import unittest
from unittest.mock import patch

from eth_abi import encode

from chain_reader.contracts import BlockRange, RawLog, TransientFetchError
from event_log.config import IndexerConfig
from event_log.contracts import FormattedArg, LogEvent
from event_log.formatting import format_args
from event_log.indexer import LogWindowIndexer
from event_log.schemas import POOL_SCHEMAS, default_registry
from event_log.serialization import deserialize_window, serialize_window
from persistence.codec import PersistenceError
from persistence.store import InMemoryStore

POOL = "0xb051c42f15a6a8eda92b9e7d82f1472b4740a509"
VAULT = "0x5802d420ee7db8c2438170bfd73af02a88499fe0"
SYNC_TOPIC = next(schema for schema in POOL_SCHEMAS if schema.name == "Sync").topic0


def _sync_log(
    tx_hash: str, block_number: int, *, address: str = POOL, reserve_dft: int = 10**18
) -> RawLog:
    return RawLog(
        address=address,
        topics=(SYNC_TOPIC,),
        data="0x" + encode(["uint256", "uint256"], [reserve_dft, 2 * 10**18]).hex(),
        block_number=block_number,
        tx_hash=tx_hash,
        block_hash=f"0xb{block_number}",
    )


class FakeReader:
    def __init__(self, head: int = 10) -> None:
        self.head = head
        self.head_error = False
        self.logs: dict[str, list[RawLog]] = {POOL: [], VAULT: []}
        self.fail_ranges: set[tuple[str, int]] = set()
        self.requested: list[tuple[str, int, int]] = []
        self.timestamps: dict[str, int] = {}

    def block_number(self) -> int:
        if self.head_error:
            raise TransientFetchError("rpc down")
        return self.head

    def get_logs(self, address, topics, block_range: BlockRange):
        self.requested.append((address, block_range.start, block_range.end))
        if (address, block_range.start) in self.fail_ranges:
            raise TransientFetchError("range too large")
        return [
            log
            for log in self.logs.get(address, [])
            if block_range.start <= log.block_number <= block_range.end
        ]

    def block_timestamp(self, block_hash: str) -> int:
        if block_hash not in self.timestamps:
            raise TransientFetchError("unknown block")
        return self.timestamps[block_hash]


class FailingStore(InMemoryStore):
    def __init__(self) -> None:
        super().__init__()
        self.fail = True

    def set(self, key: str, blob: str) -> None:
        if self.fail:
            raise PersistenceError("disk full")
        super().set(key, blob)


class TestLogWindowIndexer(unittest.TestCase):
    def setUp(self) -> None:
        self.now = [1_000]
        self.reader = FakeReader()
        self.store = InMemoryStore()
        self.registry = default_registry(pool_address=POOL, vault_address=VAULT)

    def _indexer(self, config: IndexerConfig | None = None, store=None) -> LogWindowIndexer:
        return LogWindowIndexer(
            reader=self.reader,
            registry=self.registry,
            store=store or self.store,
            config=config,
            clock_ms=lambda: self.now[0],
        )

    def test_overlapping_polls_produce_union(self) -> None:
        indexer = self._indexer()
        self.reader.logs[POOL] = [_sync_log("0xa", 5), _sync_log("0xb", 6)]
        indexer.poll()

        self.reader.head = 20
        self.reader.logs[POOL].append(_sync_log("0xc", 15))
        indexer.enqueue_logs([_sync_log("0xb", 6)])
        report = indexer.poll()

        self.assertEqual([event.tx_hash for event in indexer.history()], ["0xa", "0xb", "0xc"])
        self.assertEqual(report.added, 1)
        self.assertEqual(report.duplicates, 1)
        self.assertEqual(indexer.checkpoints()[POOL], 20)

    def test_repeated_poll_without_new_blocks_is_idempotent(self) -> None:
        indexer = self._indexer()
        self.reader.logs[POOL] = [_sync_log("0xa", 5)]
        indexer.poll()
        before = indexer.history()

        report = indexer.poll()

        self.assertEqual(indexer.history(), before)
        self.assertEqual(report.ranges, ())
        self.assertEqual(report.added, 0)

    def test_cold_start_uses_lookback(self) -> None:
        self.reader.head = 1_000
        indexer = self._indexer(IndexerConfig(lookback_blocks=300, max_block_span=300))
        indexer.poll()

        self.assertIn((POOL, 701, 1_000), self.reader.requested)
        self.assertIn((VAULT, 701, 1_000), self.reader.requested)

    def test_failed_sub_range_keeps_others_and_holds_checkpoint(self) -> None:
        self.reader.head = 29
        self.reader.logs[POOL] = [_sync_log("0xa", 3), _sync_log("0xb", 12), _sync_log("0xc", 25)]
        self.reader.fail_ranges.add((POOL, 10))
        indexer = self._indexer(IndexerConfig(max_block_span=10))

        report = indexer.poll()

        self.assertEqual([event.tx_hash for event in indexer.history()], ["0xa", "0xc"])
        self.assertEqual(len(report.failed_ranges), 1)
        self.assertFalse(report.complete)
        self.assertEqual(indexer.checkpoints()[POOL], 9)
        self.assertEqual(indexer.checkpoints()[VAULT], 29)

        self.reader.fail_ranges.clear()
        indexer.poll()

        self.assertEqual(
            sorted(event.tx_hash for event in indexer.history()), ["0xa", "0xb", "0xc"]
        )
        self.assertEqual(indexer.checkpoints()[POOL], 29)

    def test_undecodable_log_is_isolated(self) -> None:
        bad = RawLog(
            address=POOL, topics=("0x" + "ab" * 32,), data="0x", block_number=4, tx_hash="0xbad"
        )
        self.reader.logs[POOL] = [bad, _sync_log("0xa", 5)]
        indexer = self._indexer()

        report = indexer.poll()

        self.assertEqual([event.tx_hash for event in indexer.history()], ["0xa"])
        self.assertEqual(len(report.decode_failures), 1)
        self.assertEqual(report.decode_failures[0].error_kind, "unknown_signature")
        self.assertEqual(report.decode_failures[0].source, "pool")

    def test_events_are_formatted(self) -> None:
        self.reader.logs[POOL] = [_sync_log("0xa", 5)]
        indexer = self._indexer()
        indexer.poll()

        event = indexer.history()[0]
        self.assertEqual(event.label, "Pool Sync")
        self.assertEqual(event.observed_at_ms, 1_000)
        self.assertEqual(
            event.arg_map(), {"reserveDft": "1.0000 DFT", "reserveStable": "2.0000 STABLE"}
        )

    def test_uint256_max_amount_is_formatted(self) -> None:
        largest = 2**256 - 1
        self.reader.logs[POOL] = [
            _sync_log("0xa", 5),
            _sync_log("0xbig", 6, reserve_dft=largest),
        ]
        indexer = self._indexer()

        report = indexer.poll()

        self.assertTrue(report.persisted)
        self.assertEqual(report.decode_failures, ())
        events = {event.tx_hash: event for event in indexer.history()}
        self.assertEqual(
            events["0xbig"].arg_map()["reserveDft"], f"{largest // 10**18}.5840 DFT"
        )

    def test_arithmetic_failure_in_formatting_is_isolated(self) -> None:
        self.reader.logs[POOL] = [_sync_log("0xa", 5), _sync_log("0xbig", 6)]
        indexer = self._indexer()

        def format_or_fail(decoded, **kwargs):
            if decoded.raw.tx_hash == "0xbig":
                raise decimal.InvalidOperation("quantize overflow")
            return format_args(decoded, **kwargs)

        with patch("event_log.indexer.format_args", side_effect=format_or_fail):
            report = indexer.poll()

        self.assertEqual([event.tx_hash for event in indexer.history()], ["0xa"])
        self.assertEqual(len(report.decode_failures), 1)
        self.assertEqual(report.decode_failures[0].error_kind, "format_error")
        self.assertEqual(report.decode_failures[0].tx_hash, "0xbig")
        self.assertEqual(indexer.checkpoints()[POOL], 10)

    def test_persist_failure_leaves_state_unchanged(self) -> None:
        store = FailingStore()
        indexer = self._indexer(store=store)
        self.reader.logs[POOL] = [_sync_log("0xa", 5)]
        pushed = _sync_log("0xp", 50)
        indexer.enqueue_logs([pushed])

        report = indexer.poll()

        self.assertFalse(report.persisted)
        self.assertEqual(report.persist_error, "disk full")
        self.assertEqual(indexer.history(), ())
        self.assertEqual(indexer.checkpoints(), {})

        store.fail = False
        indexer.poll()

        self.assertEqual(
            sorted(event.tx_hash for event in indexer.history()), ["0xa", "0xp"]
        )

    def test_successful_poll_persists_window_and_checkpoints(self) -> None:
        self.reader.logs[POOL] = [_sync_log("0xa", 5)]
        indexer = self._indexer()
        indexer.poll()

        stored = deserialize_window(self.store.get("event_window"))
        self.assertEqual(stored.events, indexer.history())
        self.assertEqual(stored.checkpoints, {POOL: 10, VAULT: 10})

    def test_overlapping_poll_is_skipped(self) -> None:
        indexer = self._indexer()
        indexer._in_flight.acquire()
        try:
            report = indexer.poll()
        finally:
            indexer._in_flight.release()

        self.assertTrue(report.skipped)
        self.assertEqual(self.reader.requested, [])

    def test_head_failure_still_applies_retention(self) -> None:
        indexer = self._indexer(IndexerConfig(retention_ms=1_000))
        self.reader.logs[POOL] = [_sync_log("0xa", 5)]
        indexer.poll()

        self.now[0] = 5_000
        self.reader.head_error = True
        report = indexer.poll()

        self.assertEqual(report.head_error, "rpc down")
        self.assertEqual(report.ranges, ())
        self.assertEqual(indexer.history(), ())

    def test_hydrate_restores_window_and_checkpoints(self) -> None:
        event = LogEvent(
            observed_at_ms=900,
            source="vault",
            source_address=VAULT,
            event_name="Rebalanced",
            args=(FormattedArg(name="buyDft", kind="bool", value="true"),),
            tx_hash="0xr",
        )
        self.store.set("event_window", serialize_window((event,), {VAULT: 8, POOL: 9}))
        indexer = self._indexer()

        self.assertEqual(indexer.hydrate(), 1)
        self.assertEqual(indexer.history(), (event,))
        self.assertEqual(indexer.checkpoints(), {VAULT: 8, POOL: 9})

        indexer.poll()
        self.assertIn((POOL, 10, 10), self.reader.requested)
        self.assertIn((VAULT, 9, 10), self.reader.requested)

    def test_hydrate_drops_expired_events(self) -> None:
        event = LogEvent(
            observed_at_ms=0,
            source="pool",
            source_address=POOL,
            event_name="Sync",
            args=(),
            tx_hash="0xold",
        )
        self.store.set("event_window", serialize_window((event,), {}))
        self.now[0] = 10_000
        indexer = self._indexer(IndexerConfig(retention_ms=1_000))

        self.assertEqual(indexer.hydrate(), 0)

    def test_corrupt_blob_hydrates_empty(self) -> None:
        self.store.set("event_window", "{not json")
        indexer = self._indexer()

        self.assertEqual(indexer.hydrate(), 0)
        self.assertEqual(indexer.history(), ())

    def test_stale_checkpoint_restarts_from_lookback(self) -> None:
        self.store.set("event_window", serialize_window((), {POOL: 10, VAULT: 4_990}))
        self.reader.head = 5_000
        indexer = self._indexer(
            IndexerConfig(lookback_blocks=300, max_block_span=300, max_catchup_blocks=2_000)
        )
        indexer.hydrate()
        indexer.poll()

        self.assertIn((POOL, 4_701, 5_000), self.reader.requested)
        self.assertIn((VAULT, 4_991, 5_000), self.reader.requested)

    def test_block_clock_resolves_timestamps(self) -> None:
        self.reader.logs[POOL] = [_sync_log("0xa", 5), _sync_log("0xb", 6)]
        self.reader.timestamps["0xb5"] = 1
        indexer = self._indexer(IndexerConfig(retention_clock="block"))
        indexer.poll()

        events = {event.tx_hash: event for event in indexer.history()}
        self.assertEqual(events["0xa"].block_timestamp, 1)
        self.assertIsNone(events["0xb"].block_timestamp)


if __name__ == "__main__":
    unittest.main()
