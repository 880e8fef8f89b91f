import unittest

from chain_reader.contracts import BlockRange, raw_log_from_rpc, to_hex
from chain_reader.fixed_point import round_units, to_float

POOL = "0xB051c42F15a6A8eDa92b9e7d82f1472B4740a509"


class TestBlockRange(unittest.TestCase):
    def test_span_is_inclusive(self) -> None:
        self.assertEqual(BlockRange(start=10, end=19).span, 10)
        self.assertEqual(BlockRange(start=5, end=5).span, 1)

    def test_inverted_range_rejected(self) -> None:
        with self.assertRaises(ValueError):
            BlockRange(start=10, end=9)


class TestRawLogFromRpc(unittest.TestCase):
    def test_hex_quantities_are_parsed(self) -> None:
        log = raw_log_from_rpc(
            {
                "address": POOL,
                "topics": ["0xAB"],
                "data": "0x",
                "blockNumber": "0x10",
                "logIndex": "0x2",
                "transactionHash": "0xDEAD",
                "blockHash": "0xBEEF",
            }
        )

        self.assertEqual(log.address, POOL.lower())
        self.assertEqual(log.topics, ("0xab",))
        self.assertEqual(log.block_number, 16)
        self.assertEqual(log.log_index, 2)
        self.assertEqual(log.tx_hash, "0xdead")
        self.assertEqual(log.block_hash, "0xbeef")
        self.assertFalse(log.removed)

    def test_bytes_values_from_web3_are_normalized(self) -> None:
        log = raw_log_from_rpc(
            {
                "address": POOL,
                "topics": [b"\x01\x02"],
                "data": b"\xff",
                "blockNumber": 7,
                "transactionHash": b"\xaa\xbb",
                "removed": True,
            }
        )

        self.assertEqual(log.topics, ("0x0102",))
        self.assertEqual(log.data, "0xff")
        self.assertEqual(log.tx_hash, "0xaabb")
        self.assertTrue(log.removed)

    def test_missing_transaction_hash_rejected(self) -> None:
        with self.assertRaises(ValueError):
            raw_log_from_rpc({"address": POOL, "topics": [], "blockNumber": 1})

    def test_to_hex_adds_prefix(self) -> None:
        self.assertEqual(to_hex("ABCD"), "0xabcd")


class TestFixedPoint(unittest.TestCase):
    def test_round_units_half_up(self) -> None:
        self.assertEqual(str(round_units(12_345_650_000_000_000_000, 4)), "12.3457")

    def test_round_units_handles_uint256_max(self) -> None:
        amount = 2**256 - 1

        self.assertEqual(str(round_units(amount, 4)), f"{amount // 10**18}.5840")

    def test_to_float(self) -> None:
        self.assertEqual(to_float(15 * 10**17), 1.5)


if __name__ == "__main__":
    unittest.main()
