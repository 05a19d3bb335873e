"""
Locust Load Test Suite

Users are provisioned by the identity platform, so the load test signs
bearer tokens for pre-seeded user ids with the shared SECRET_KEY.

Environment:
  LOAD_USER_ID_START / LOAD_USER_COUNT  client ids with active subscriptions
  LOAD_STAFF_USER_ID                    staff id used to schedule test classes

Run scenarios:
  locust -f locustfile.py --tags contention  # 100 clients -> 10 seats, waitlist + promotion
  locust -f locustfile.py --tags throughput  # class listing cache
  locust -f locustfile.py --tags edge        # bad input
  locust -f locustfile.py                    # All tests
"""

import os
import random
from datetime import datetime, timezone, timedelta

from locust import HttpUser, task, between, tag

from studio_booking.core.security import create_access_token

USER_ID_START = int(os.environ.get("LOAD_USER_ID_START", "1"))
USER_COUNT = int(os.environ.get("LOAD_USER_COUNT", "500"))
STAFF_USER_ID = int(os.environ.get("LOAD_STAFF_USER_ID", "1"))

# Shared state
CLASS_IDS = []
CONTENTION_CLASS_ID = None


def auth_headers(user_id: int) -> dict:
    token = create_access_token(data={"sub": str(user_id)}, expires_delta=timedelta(hours=2))
    return {"Authorization": f"Bearer {token}"}


def random_client_headers() -> dict:
    return auth_headers(random.randint(USER_ID_START, USER_ID_START + USER_COUNT - 1))


def class_payload(capacity: int, days_ahead: int) -> dict:
    starts_at = datetime.now(timezone.utc) + timedelta(days=days_ahead)
    return {
        "name": f"Load Mat {random.randint(1, 10000)}",
        "category": "group",
        "equipment_type": "mat",
        "starts_at": starts_at.isoformat(),
        "capacity": capacity,
    }


class ContentionUser(HttpUser):
    """
    TEST 1: Contention - 100 clients -> 10 seats

    Run: locust -f locustfile.py --tags contention -u 100 -r 50 --run-time 30s

    After test, verify:
      SELECT COUNT(*) FROM bookings WHERE class_id = X AND status <> 'cancelled';
    Should be <= 10, with everyone else on the waitlist at dense positions:
      SELECT position FROM waitlist_entries WHERE class_id = X ORDER BY position;
    """
    wait_time = between(0, 0.1)

    def on_start(self):
        self.headers = random_client_headers()
        self.booking_id = None

        if not CONTENTION_CLASS_ID:
            resp = self.client.post(
                "/api/v1/classes/",
                json=class_payload(capacity=10, days_ahead=7),
                headers=auth_headers(STAFF_USER_ID),
            )
            if resp.status_code == 201:
                globals()["CONTENTION_CLASS_ID"] = resp.json()["id"]

    @tag("contention")
    @task(5)
    def book_limited_seats(self):
        """All clients fight for the same 10 seats; losers are waitlisted."""
        if not CONTENTION_CLASS_ID:
            return

        with self.client.post(
            "/api/v1/bookings/",
            json={"class_id": CONTENTION_CLASS_ID},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            if resp.status_code == 201:
                body = resp.json()
                if body["outcome"] == "confirmed":
                    self.booking_id = body["booking"]["id"]
                resp.success()
            elif resp.status_code in (409, 422):
                resp.success()  # Already booked / queued / out of credits
            else:
                resp.failure(f"Unexpected: {resp.status_code}")

    @tag("contention")
    @task(1)
    def cancel_and_promote(self):
        """Freeing a seat promotes the head of the waitlist."""
        if not self.booking_id:
            return

        with self.client.delete(
            f"/api/v1/bookings/{self.booking_id}",
            headers=self.headers,
            name="/api/v1/bookings/{id}",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 409):
                resp.success()
            else:
                resp.failure(f"Unexpected: {resp.status_code}")
            self.booking_id = None


class ThroughputUser(HttpUser):
    """
    TEST 2: Throughput - Cache effectiveness

    Run twice:
      1. With Redis: locust -f locustfile.py --tags throughput -u 100 -r 20 --run-time 60s
      2. Without Redis: REDIS_ENABLED=false, run again
    """
    wait_time = between(0.1, 0.5)

    @tag("throughput", "read")
    @task(10)
    def list_classes_cached(self):
        page = random.randint(1, 5)
        resp = self.client.get(
            f"/api/v1/classes/?page={page}&page_size=20",
            name="/api/v1/classes/ [cached]",
        )
        if resp.status_code == 200:
            for class_ in resp.json().get("classes", []):
                if class_["id"] not in CLASS_IDS:
                    CLASS_IDS.append(class_["id"])

    @tag("throughput", "read")
    @task(3)
    def get_class_detail(self):
        if CLASS_IDS:
            self.client.get(
                f"/api/v1/classes/{random.choice(CLASS_IDS)}",
                name="/api/v1/classes/{id}",
            )

    @tag("throughput")
    @task(1)
    def health_check(self):
        self.client.get("/health")


class EdgeCaseUser(HttpUser):
    """
    TEST 3: Edge cases - Bad input handling

    Run: locust -f locustfile.py --tags edge -u 20 -r 5 --run-time 30s

    System should NOT crash, return proper error codes.
    """
    wait_time = between(0.5, 1.5)

    def on_start(self):
        self.headers = random_client_headers()

    def _expect(self, resp, codes):
        if resp.status_code in codes:
            resp.success()
        else:
            resp.failure(f"Expected {codes}, got {resp.status_code}")

    @tag("edge")
    @task
    def invalid_class_id(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"class_id": 999999},
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def malformed_json(self):
        with self.client.post(
            "/api/v1/bookings/",
            data="not json at all",
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [400, 422])

    @tag("edge")
    @task
    def missing_auth(self):
        with self.client.post(
            "/api/v1/bookings/",
            json={"class_id": 1},
            catch_response=True,
        ) as resp:
            self._expect(resp, [401])

    @tag("edge")
    @task
    def leave_unknown_waitlist(self):
        with self.client.delete(
            "/api/v1/waitlist/999999",
            headers=self.headers,
            name="/api/v1/waitlist/{class_id}",
            catch_response=True,
        ) as resp:
            self._expect(resp, [404])

    @tag("edge")
    @task
    def client_creates_class(self):
        with self.client.post(
            "/api/v1/classes/",
            json=class_payload(capacity=5, days_ahead=3),
            headers=self.headers,
            catch_response=True,
        ) as resp:
            self._expect(resp, [403])


class RealisticUser(HttpUser):
    """
    TEST 4: Realistic mixed workload

    Run: locust -f locustfile.py -u 200 -r 20 --run-time 120s

      - Mostly browsing the schedule
      - Some bookings and waitlist checks
      - Occasional cancellations
    """
    wait_time = between(1, 3)

    def on_start(self):
        self.headers = random_client_headers()
        self.booking_ids = []

    @task(50)
    def browse_classes(self):
        resp = self.client.get("/api/v1/classes/?page=1&page_size=20")
        if resp.status_code == 200:
            for class_ in resp.json().get("classes", []):
                if class_["id"] not in CLASS_IDS:
                    CLASS_IDS.append(class_["id"])

    @task(20)
    def view_class(self):
        if CLASS_IDS:
            self.client.get(f"/api/v1/classes/{random.choice(CLASS_IDS)}", name="/api/v1/classes/{id}")

    @task(10)
    def book_class(self):
        if not CLASS_IDS:
            return
        resp = self.client.post(
            "/api/v1/bookings/",
            json={"class_id": random.choice(CLASS_IDS)},
            headers=self.headers,
        )
        if resp.status_code == 201 and resp.json()["outcome"] == "confirmed":
            self.booking_ids.append(resp.json()["booking"]["id"])

    @task(5)
    def my_waitlist(self):
        self.client.get("/api/v1/waitlist/", headers=self.headers)

    @task(3)
    def cancel_booking(self):
        if self.booking_ids:
            self.client.delete(
                f"/api/v1/bookings/{self.booking_ids.pop()}",
                headers=self.headers,
                name="/api/v1/bookings/{id}",
            )
