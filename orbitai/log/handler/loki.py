import sys
import socket
import logging
import requests
import threading
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

StreamKey = Tuple[str, str]


class LokiHandler(logging.Handler):
    """
    Pushes log records to Grafana Loki in batches from a background thread.

    Records are grouped into one Loki stream per (level, logger) pair, every
    stream carrying the `job` and `hostname` labels. Output of the learning
    process (`proc.<name>` loggers) is pushed unformatted under the child name.
    Delivery is best effort: a failed push drops the batch.
    """
    def __init__(self, url: str, org_id: Optional[str] = None, flush_interval: float = 10, batch_size: int = 200, job: str = "orbitai"):
        """
        :param url: The base URL of the Loki instance.
        :param org_id: The tenant ID sent as 'X-Scope-OrgID'.
        :param flush_interval: Seconds between two periodic pushes.
        :param batch_size: Number of buffered records that triggers an immediate push.
        :param job: Value of the `job` label.
        """
        super().__init__()
        self.url = f"{url.rstrip('/')}/loki/api/v1/push"
        self.org_id = org_id
        self.flush_interval = flush_interval
        self.batch_size = batch_size
        self.labels = {"job": job, "hostname": socket.gethostname() or "unknown-host"}
        self._pending: Dict[StreamKey, List[List[str]]] = defaultdict(list)
        self._count = 0
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._run, name="LokiPushThread", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop_event.wait(self.flush_interval):
            self.flush()
        self.flush()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            if record.name.startswith('proc.'):
                logger_name, line = record.name.split('.', 1)[1], record.getMessage()
            else:
                logger_name, line = record.name, self.format(record)
            value = [str(int(record.created * 1e9)), line]
        except Exception:
            self.handleError(record)
            return

        with self._lock:
            self._pending[(record.levelname.lower(), logger_name)].append(value)
            self._count += 1
            full = self._count >= self.batch_size
        if full:
            self.flush()

    def build_payload(self, pending: Dict[StreamKey, List[List[str]]]) -> Dict[str, list]:
        streams = []
        for (level, logger_name), values in pending.items():
            streams.append({
                "stream": {**self.labels, "level": level, "logger": logger_name},
                "values": values,
            })
        return {"streams": streams}

    def flush(self) -> None:
        """Pushes every buffered record."""
        with self._lock:
            pending, self._pending = self._pending, defaultdict(list)
            count, self._count = self._count, 0
        if not count:
            return

        headers = {'Content-Type': 'application/json'}
        if self.org_id:
            headers['X-Scope-OrgID'] = self.org_id
        # Errors are printed, logging them would feed this handler again.
        try:
            response = requests.post(self.url, json=self.build_payload(pending), headers=headers, timeout=5)
        except requests.RequestException as e:
            print(f"Failed to push {count} log records to Loki: {e}", file=sys.stderr)
            return
        if response.status_code != 204:
            print(f"Loki rejected {count} log records: {response.status_code} - {response.text}", file=sys.stderr)

    def close(self) -> None:
        """Stops the push thread after a last push."""
        self._stop_event.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.flush_interval + 2)
        super().close()
