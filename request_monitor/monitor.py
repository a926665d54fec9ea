"""RequestMonitor — wires ingestor, store, query engine and retention together.

The hosting process drives the lifecycle explicitly::

    monitor = RequestMonitor(Config.from_env())
    monitor.initialize()
    monitor.on_enable()     # creates the table
    ...
    monitor.on_disable()
"""

import logging

from request_monitor.config import Config
from request_monitor.exceptions import DescriptorError
from request_monitor.ingestor import classify
from request_monitor.models import RequestDescriptor
from request_monitor.query import QueryEngine
from request_monitor.retention import RetentionControl
from request_monitor.store import LogStore
from request_monitor.validator import DescriptorValidator

logger = logging.getLogger(__name__)


class RequestMonitor:
    def __init__(self, config: Config | None = None):
        self.config = config or Config()
        self.store: LogStore | None = None
        self.engine: QueryEngine | None = None
        self.retention: RetentionControl | None = None
        self.validator: DescriptorValidator | None = None

    def initialize(self):
        if self.store is not None:
            return
        storage = self.config["storage"]
        self.store = LogStore(
            url=storage["url"],
            table_name=storage["table_name"],
            echo=storage["echo"],
        )
        self.engine = QueryEngine(self.store)
        self.retention = RetentionControl(self.store)
        self.validator = DescriptorValidator(self.config["schema"]["path"])
        logger.info("Request monitor initialized (table=%s)", storage["table_name"])

    def on_enable(self):
        self.initialize()
        self.store.create_schema()

    def on_disable(self):
        if self.store is None:
            return
        if self.config["storage"]["drop_on_disable"]:
            self.store.drop_schema()
        self.store.close()
        self.store = self.engine = self.retention = self.validator = None
        logger.info("Request monitor disabled")

    def _require_started(self):
        if self.store is None:
            raise RuntimeError("RequestMonitor.initialize() has not been called")

    def ingest(self, descriptor: RequestDescriptor) -> int:
        """Classify one request and append it. Returns the new record id."""
        self._require_started()
        record = classify(descriptor)
        log_id = self.store.append(record)
        logger.debug("Captured %s %s from %s as #%d",
                     record.method, record.url, record.ip_address, log_id)
        return log_id

    def ingest_payload(self, payload) -> int:
        """Validate a JSON descriptor from an external collaborator and ingest it."""
        self._require_started()
        is_valid, errors = self.validator.validate(payload)
        if not is_valid:
            raise DescriptorError(errors)
        return self.ingest(RequestDescriptor.from_dict(payload))

    def query(self, params) -> dict:
        self._require_started()
        return self.engine.handle(params)

    def details(self, log_id) -> dict | None:
        self._require_started()
        record = self.engine.get_details(log_id)
        return record.to_dict() if record is not None else None

    def clear(self) -> int:
        self._require_started()
        return self.retention.clear_all()
