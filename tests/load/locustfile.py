"""
Locust load testing for the lease queue API.

Run with:
    locust -f tests/load/locustfile.py --host=http://localhost:8080

Or headless:
    locust -f tests/load/locustfile.py --host=http://localhost:8080 \
        --headless -u 20 -r 5 --run-time 1m
"""

import random
import string
import uuid

from locust import HttpUser, between, task

PAYLOAD_ALPHABET = string.ascii_letters + string.digits


def random_payload(min_length: int = 250, max_length: int = 300) -> str:
    length = random.randint(min_length, max_length)
    return "".join(random.choices(PAYLOAD_ALPHABET, k=length))


class ProducerUser(HttpUser):
    """Simulated producer that keeps enqueueing messages."""

    wait_time = between(0.1, 0.5)

    @task(10)
    def enqueue(self):
        self.client.post(
            "/v1/messages",
            json={"payload": random_payload()},
            name="/v1/messages [POST]",
        )

    @task(1)
    def get_stats(self):
        self.client.get("/v1/messages/stats", name="/v1/messages/stats [GET]")


class ConsumerUser(HttpUser):
    """
    Simulated consumer: claim a batch, then acknowledge each message.

    Every user claims under a fresh client id, so any 409 on acknowledge
    means a lease lapsed and another consumer took the message over.
    """

    wait_time = between(0.1, 0.5)

    @task
    def claim_and_acknowledge(self):
        client_id = f"load-{uuid.uuid4().hex}"

        response = self.client.post(
            "/v1/messages/claim",
            json={"client_id": client_id, "count": random.randint(1, 5)},
            name="/v1/messages/claim [POST]",
        )
        if response.status_code != 200:
            return

        for message in response.json()["messages"]:
            with self.client.delete(
                f"/v1/messages/{message['message_id']}",
                params={"client_id": client_id},
                name="/v1/messages/{message_id} [DELETE]",
                catch_response=True,
            ) as ack:
                if ack.status_code == 204:
                    ack.success()
                else:
                    ack.failure(f"acknowledge returned {ack.status_code}")
