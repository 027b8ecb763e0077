"""
Locust Load Test Suite

Point it at a server running against a seeded trip:
  SEATSYNC_TRIP_ID=... SEATSYNC_VESSEL_ID=... SEATSYNC_SEAT_IDS=a,b,c locust -f locustfile.py

Run scenarios:
  locust -f locustfile.py --tags contention  # Many admins toggling few seats
  locust -f locustfile.py --tags read        # Seat map polling
  locust -f locustfile.py --tags edge        # Unknown seats, missing vessel
  locust -f locustfile.py                    # All tests
"""

import os
import random
import requests
from locust import HttpUser, task, between, tag, events

TRIP_ID = os.environ.get("SEATSYNC_TRIP_ID", "trip-1")
VESSEL_ID = os.environ.get("SEATSYNC_VESSEL_ID", "vessel-1")
SEAT_IDS = [s for s in os.environ.get("SEATSYNC_SEAT_IDS", "").split(",") if s]

SEATS_URL = f"/api/v1/trips/{TRIP_ID}/seats"
PARAMS = {"vessel_id": VESSEL_ID}


@events.test_start.add_listener
def on_test_start(environment, **kwargs):
    """Fill SEAT_IDS from the seat map when none were given."""
    if SEAT_IDS or environment.host is None:
        return
    resp = requests.get(f"{environment.host}{SEATS_URL}", params=PARAMS, timeout=10)
    if resp.ok:
        SEAT_IDS.extend(seat["id"] for seat in resp.json()["seats"])
    print(f"SETUP: {len(SEAT_IDS)} seats on trip {TRIP_ID}")


class ContentionUser(HttpUser):
    """
    Many admins toggling a handful of seats.

    Run: locust -f locustfile.py --tags contention -u 50 -r 25 --run-time 30s

    Expect only 200 (applied), 202 (seat already in flight) and 409 (booked).
    A 502 means the remote store rejected a write.
    """
    wait_time = between(0, 0.1)

    @tag("contention")
    @task
    def toggle_hot_seat(self):
        if not SEAT_IDS:
            return
        seat_id = random.choice(SEAT_IDS[:4])
        with self.client.post(
            f"{SEATS_URL}/{seat_id}/toggle",
            params=PARAMS,
            name="/seats/[id]/toggle",
            catch_response=True,
        ) as resp:
            if resp.status_code in (200, 202, 409):
                resp.success()
            else:
                resp.failure(f"unexpected {resp.status_code}")


class ReadUser(HttpUser):
    """Seat map polling; reads come from the session's local copy."""
    wait_time = between(0.1, 0.5)

    @tag("read")
    @task(5)
    def seat_map(self):
        self.client.get(SEATS_URL, params=PARAMS, name="/seats")

    @tag("read")
    @task(1)
    def reload(self):
        self.client.post(f"{SEATS_URL}/reload", params=PARAMS, name="/seats/reload")


class EdgeCaseUser(HttpUser):
    wait_time = between(0.5, 1)

    @tag("edge")
    @task
    def unknown_seat(self):
        with self.client.post(
            f"{SEATS_URL}/no-such-seat/block", params=PARAMS, name="/seats/[unknown]/block", catch_response=True
        ) as resp:
            if resp.status_code == 404:
                resp.success()

    @tag("edge")
    @task
    def missing_vessel(self):
        with self.client.get(SEATS_URL, name="/seats [no vessel]", catch_response=True) as resp:
            if resp.status_code == 422:
                resp.success()
