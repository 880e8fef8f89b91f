import unittest

from chain_reader.config import (
    ChainReaderConfig,
    ContractAddresses,
    RetryPolicy,
    SubscriptionConfig,
    validate_config,
)
from chain_reader.retry import ConnectionState, ConnectionSupervisor, RetrySchedule

CONTRACTS = ContractAddresses(
    pool="0xB051c42F15a6A8eDa92b9e7d82f1472B4740a509",
    vault="0x5802D420ee7Db8c2438170bFD73AF02a88499fE0",
    dft_token="0xC0AE275e1321261bA3dC9b51E62fCe7BEaA0c5d9",
    stable_token="0xcbB672B00583f12c2761dE02db20B5936c5C91f8",
)


class TestRetrySchedule(unittest.TestCase):
    def test_delays_double_up_to_cap(self) -> None:
        schedule = RetrySchedule(min_delay_ms=100, max_delay_ms=500, max_attempts=5)

        self.assertEqual(schedule.delays(), (100, 200, 400, 500, 500))

    def test_max_elapsed_truncates(self) -> None:
        schedule = RetrySchedule(
            min_delay_ms=100, max_delay_ms=1000, max_attempts=10, max_elapsed_ms=700
        )

        self.assertEqual(schedule.delays(), (100, 200, 400))


class TestConnectionSupervisor(unittest.TestCase):
    def test_connect_resets_failures(self) -> None:
        supervisor = ConnectionSupervisor(
            RetryPolicy(min_delay_ms=100, max_delay_ms=1000, max_attempts=3)
        )
        supervisor.record_failure(RuntimeError("boom"))
        supervisor.record_failure(RuntimeError("boom"))

        self.assertEqual(supervisor.next_retry_delay_ms(), 200)

        supervisor.record_connected()

        self.assertEqual(supervisor.status.state, ConnectionState.CONNECTED)
        self.assertEqual(supervisor.status.failure_count, 0)
        self.assertIsNone(supervisor.next_retry_delay_ms())

    def test_attempts_exhausted(self) -> None:
        supervisor = ConnectionSupervisor(
            RetryPolicy(min_delay_ms=100, max_delay_ms=1000, max_attempts=1)
        )
        supervisor.record_failure(RuntimeError("a"))
        self.assertEqual(supervisor.next_retry_delay_ms(), 100)
        supervisor.record_failure(RuntimeError("b"))
        self.assertIsNone(supervisor.next_retry_delay_ms())


class TestChainConfig(unittest.TestCase):
    def test_valid_config_passes(self) -> None:
        validate_config(
            ChainReaderConfig(
                rpc_url="http://localhost:8545",
                request_timeout_ms=1000,
                contracts=CONTRACTS,
                subscription=SubscriptionConfig(
                    ws_url="ws://localhost:8546",
                    connect_timeout_ms=1000,
                    read_timeout_ms=1000,
                    retry=RetryPolicy(min_delay_ms=100, max_delay_ms=1000, max_attempts=3),
                ),
            )
        )

    def test_bad_address_rejected(self) -> None:
        contracts = ContractAddresses(
            pool="0x123",
            vault=CONTRACTS.vault,
            dft_token=CONTRACTS.dft_token,
            stable_token=CONTRACTS.stable_token,
        )
        with self.assertRaises(ValueError):
            validate_config(
                ChainReaderConfig(
                    rpc_url="http://localhost:8545", request_timeout_ms=1000, contracts=contracts
                )
            )

    def test_retry_bounds_checked(self) -> None:
        with self.assertRaises(ValueError):
            validate_config(
                ChainReaderConfig(
                    rpc_url="http://localhost:8545",
                    request_timeout_ms=1000,
                    contracts=CONTRACTS,
                    subscription=SubscriptionConfig(
                        ws_url="ws://localhost:8546",
                        connect_timeout_ms=1000,
                        read_timeout_ms=1000,
                        retry=RetryPolicy(min_delay_ms=500, max_delay_ms=100, max_attempts=3),
                    ),
                )
            )


if __name__ == "__main__":
    unittest.main()
