"""Locust load script for a Stremio addon.
Usage:
  STREMIO_USER_DATA="<segment>" locust -f perf/locustfile.py --host http://localhost:8080
"""
import os
from locust import HttpUser, task, between

USER_DATA = os.getenv("STREMIO_USER_DATA", "")
ITEM_ID = os.getenv("STREMIO_ITEM_ID", "tt1254207")
ITEM_TYPE = os.getenv("STREMIO_ITEM_TYPE", "movie")


class StremioUser(HttpUser):
    wait_time = between(0.2, 1.0)

    def prefix(self) -> str:
        return f"/{USER_DATA}" if USER_DATA else ""

    @task(1)
    def manifest(self):
        self.client.get(f"{self.prefix()}/manifest.json", name="manifest")

    @task(5)
    def streams(self):
        self.client.get(f"{self.prefix()}/stream/{ITEM_TYPE}/{ITEM_ID}.json", name="stream")

    @task(1)
    def unknown_item(self):
        # Exercises the not-found path
        self.client.get(f"{self.prefix()}/stream/{ITEM_TYPE}/tt0000000.json", name="stream (not found)")
