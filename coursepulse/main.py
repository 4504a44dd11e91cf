"""
Main entry point for the CoursePulse platform.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional

from .api.rest_api import CoursePulseRestAPI
from .config import load_config
from .core.enums import EntityType
from .core.exceptions import ConfigurationError
from .persistence import EntityStore
from .persistence.seed_data import DEFAULT_PROFESSOR_ID
from .remote import RestRemoteClient
from .services import (
    EnrollmentService, GradebookService, QueryEngine, QueryRequest,
    RecordingNotifier, SyncService,
)


class CoursePulsePlatform:
    """Main platform class that wires the store, services and API together."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self._config = config or load_config()
        self._store = None
        self._remote = None
        self._sync_service = None
        self._query_engine = None
        self._enrollment_service = None
        self._gradebook_service = None
        self._notifier = None
        self._rest_app = None
        self._rest_thread = None
        self._running = False
        self.data_source = None

        # Initialize platform
        self._initialize_platform()

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def rest_app(self) -> CoursePulseRestAPI:
        return self._rest_app

    def _initialize_platform(self):
        """Initialize the platform with all services."""
        print("Initializing CoursePulse platform...")

        self._store = EntityStore()
        print("✓ Entity store initialized")

        remote_config = self._config["remote"]
        if remote_config.get("base_url"):
            self._remote = RestRemoteClient(
                remote_config["base_url"],
                api_key=remote_config.get("api_key"),
                timeout=remote_config["timeout"],
            )
            print(f"✓ Remote backend configured: {remote_config['base_url']}")
        else:
            print("✓ No remote backend configured, using demo data")

        self._sync_service = SyncService(
            self._store,
            remote=self._remote,
            timeout=remote_config["timeout"],
            max_workers=remote_config["max_workers"],
            seed_on_failure=self._config["seed_on_failure"],
        )
        self.data_source = self._sync_service.initial_load()
        print(f"✓ Initial data loaded from {self.data_source}")

        self._query_engine = QueryEngine(self._store)
        self._enrollment_service = EnrollmentService(self._store, self._sync_service)
        self._gradebook_service = GradebookService(self._store, self._sync_service)
        self._notifier = RecordingNotifier()
        print("✓ Services initialized")

        self._rest_app = CoursePulseRestAPI(
            self._store,
            self._query_engine,
            self._enrollment_service,
            self._gradebook_service,
            sync_service=self._sync_service,
            notifier=self._notifier,
            page_size=self._config["page_size"],
        )
        print("✓ REST API initialized")

        print("✓ CoursePulse platform initialized successfully!")

    def start_rest_server(self, host: str = "0.0.0.0", port: int = 8000):
        """Start the REST server."""
        if self._rest_thread is not None:
            print("REST server already running")
            return

        import uvicorn

        def run_server():
            uvicorn.run(
                self._rest_app.app,
                host=host,
                port=port,
                log_level=self._config["log_level"].lower()
            )

        # Start server in a separate thread
        self._rest_thread = threading.Thread(target=run_server, daemon=True)
        self._rest_thread.start()

        print(f"✓ REST server started on {host}:{port}")

    def start_platform(self, host: str = "0.0.0.0", port: int = 8000):
        """Start the entire platform."""
        if self._running:
            print("Platform already running")
            return

        print("Starting CoursePulse platform...")
        self.start_rest_server(host, port)

        self._running = True
        print("✓ CoursePulse platform started successfully!")
        print(f"  - REST API: http://localhost:{port}")
        print(f"  - API Docs: http://localhost:{port}/docs")

    def stop_platform(self):
        """Stop the platform, flushing pending remote writes."""
        if not self._running:
            print("Platform not running")
            return

        print("Stopping CoursePulse platform...")
        self._sync_service.shutdown(wait_for_tasks=True)
        print("✓ Sync service stopped")

        self._running = False
        print("✓ CoursePulse platform stopped")

    def run_demo(self):
        """Print a dashboard summary of the loaded data."""
        print("Running CoursePulse demonstration...")
        professor_id = self._config.get("professor_id") or DEFAULT_PROFESSOR_ID
        request = QueryRequest(professor_id=professor_id, page_size=self._config["page_size"])

        print("\n=== Course Health ===")
        for row in self._query_engine.query_courses(request).items:
            print(f"{row.code:<8} {row.name:<40} health {row.health:>3}  "
                  f"engagement {row.engagement_rate:>3}%  silent {row.silent_count}")

        print("\n=== Students Needing Attention ===")
        at_risk = QueryRequest(professor_id=professor_id, filter="at-risk")
        for row in self._query_engine.query_students(at_risk).items:
            print(f"{row.name:<24} {row.status.value:<8} health {row.health:>3}  "
                  f"silent {row.silent_days} days")

        print("\n=== Statistics ===")
        for entity_type in (EntityType.COURSE, EntityType.STUDENT, EntityType.FEEDBACK, EntityType.LECTURE):
            print(f"{entity_type.value}: {self._query_engine.stats(entity_type, request)}")

        print("\n✓ Demo completed")


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description="CoursePulse course health dashboard")
    parser.add_argument("--host", type=str, default="0.0.0.0", help="REST server host")
    parser.add_argument("--port", type=int, default=8000, help="REST server port")
    parser.add_argument("--demo", action="store_true", help="Run demo mode")
    parser.add_argument("--config", type=str, help="Configuration file path")

    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigurationError as e:
        parser.error(e.message)

    logging.basicConfig(
        level=config["log_level"].upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Create and start platform
    platform = CoursePulsePlatform(config)

    try:
        if args.demo:
            platform.run_demo()
        else:
            platform.start_platform(args.host, args.port)

            # Keep running
            print("\nPlatform is running. Press Ctrl+C to stop.")
            while True:
                time.sleep(1)

    except KeyboardInterrupt:
        print("\nShutting down...")
        platform.stop_platform()


if __name__ == "__main__":
    main()
