"""
Concurrency tests for competing consumers.
"""

import asyncio

from leasequeue.service import MessageQueue


class TestConcurrentClaims:
    """Tests for claims racing over the same rows."""

    async def test_concurrent_claims_are_disjoint(self, queue: MessageQueue):
        """No message is handed to two consumers under live leases."""
        for i in range(20):
            await queue.enqueue(f"m{i}")

        results = await asyncio.gather(
            *(queue.claim(f"worker-{n}", count=4) for n in range(5))
        )

        seen: set = set()
        for claimed in results:
            ids = {c.id for c in claimed}
            assert len(ids) == len(claimed)
            assert seen.isdisjoint(ids)
            seen |= ids
        assert len(seen) <= 20

    async def test_oversubscribed_claims_never_double_deliver(self, queue: MessageQueue):
        for i in range(3):
            await queue.enqueue(f"m{i}")

        results = await asyncio.gather(
            *(queue.claim(f"worker-{n}", count=2) for n in range(6))
        )

        all_ids = [c.id for claimed in results for c in claimed]
        assert len(all_ids) == len(set(all_ids))
        assert len(all_ids) <= 3

    async def test_each_claimed_message_acks_once(self, queue: MessageQueue):
        for i in range(6):
            await queue.enqueue(f"m{i}")

        results = await asyncio.gather(
            *(queue.claim(f"worker-{n}", count=3) for n in range(3))
        )

        for n, claimed in enumerate(results):
            for message in claimed:
                outcome = await queue.acknowledge(message.id, f"worker-{n}")
                assert outcome.value == "deleted"
