"""Prometheus metrics for gasbump.

Six metrics are exported in the Prometheus text format:
- gasbump_rpc_retries_total / gasbump_rpc_failures_total, by read operation
- gasbump_submissions_total, by send kind and node verdict
- gasbump_escalation_outcomes_total, by terminal outcome
- gasbump_escalation_rounds, rounds used per sequence
- gasbump_escalations_in_flight, sequences currently running
"""

import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional

logger = logging.getLogger(__name__)

LabelKey = tuple[str, ...]


class _Metric:
    """Shared storage for one metric family.

    Samples are keyed by their label values, in the order the label names
    were declared. A metric without labels has the single key ``()``.
    """

    kind = "untyped"

    def __init__(self, name: str, description: str, labels: Optional[list[str]] = None):
        self.name = name
        self.description = description
        self.label_names = tuple(labels or ())
        self._lock = threading.Lock()

    def _key(self, labels: dict) -> LabelKey:
        if set(labels) != set(self.label_names):
            raise ValueError(
                f"{self.name} takes labels {list(self.label_names)}, got {sorted(labels)}"
            )
        return tuple(str(labels[n]) for n in self.label_names)

    def _selector(self, key: LabelKey, extra: str = "") -> str:
        pairs = [f'{n}="{v}"' for n, v in zip(self.label_names, key)]
        if extra:
            pairs.append(extra)
        return "{" + ",".join(pairs) + "}" if pairs else ""

    def _header(self) -> list[str]:
        return [f"# HELP {self.name} {self.description}", f"# TYPE {self.name} {self.kind}"]

    def _sample_lines(self) -> list[str]:
        raise NotImplementedError

    def to_prometheus(self) -> str:
        """Format as Prometheus text."""
        with self._lock:
            return "\n".join(self._header() + self._sample_lines())


class Counter(_Metric):
    """Monotonic count, optionally split by labels.

    Usage:
        submissions_total.inc(kind="initial", status="accepted")
    """

    kind = "counter"

    def __init__(self, name: str, description: str, labels: Optional[list[str]] = None):
        super().__init__(name, description, labels)
        self._values: dict[LabelKey, float] = {}

    def inc(self, amount: float = 1.0, **labels) -> None:
        if amount < 0:
            raise ValueError("Counters can only increase")
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + amount

    def get_all(self) -> dict[LabelKey, float]:
        """Current value per label key."""
        with self._lock:
            return dict(self._values)

    def _sample_lines(self) -> list[str]:
        return [f"{self.name}{self._selector(k)} {v}" for k, v in self._values.items()]


class Gauge(_Metric):
    """Level that moves both ways; used for in-flight counts."""

    kind = "gauge"

    def __init__(self, name: str, description: str):
        super().__init__(name, description)
        self._value = 0.0

    def inc(self, amount: float = 1.0) -> None:
        with self._lock:
            self._value += amount

    def dec(self, amount: float = 1.0) -> None:
        with self._lock:
            self._value -= amount

    def get(self) -> float:
        with self._lock:
            return self._value

    def _sample_lines(self) -> list[str]:
        return [f"{self.name} {self._value}"]


class Histogram(_Metric):
    """Cumulative bucket counts for a single unlabelled series."""

    kind = "histogram"

    def __init__(self, name: str, description: str, buckets: tuple):
        super().__init__(name, description)
        self.buckets = tuple(sorted(buckets))
        self._bucket_counts = [0] * len(self.buckets)
        self._sum = 0.0
        self._count = 0

    def observe(self, value: float) -> None:
        with self._lock:
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    self._bucket_counts[i] += 1
            self._sum += value
            self._count += 1

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def sum(self) -> float:
        with self._lock:
            return self._sum

    def _sample_lines(self) -> list[str]:
        if not self._count:
            return []
        lines = [
            f'{self.name}_bucket{{le="{bound}"}} {n}'
            for bound, n in zip(self.buckets, self._bucket_counts)
        ]
        lines.append(f'{self.name}_bucket{{le="+Inf"}} {self._count}')
        lines.append(f"{self.name}_sum {self._sum}")
        lines.append(f"{self.name}_count {self._count}")
        return lines


# RPC reads, labelled by the name passed to with_backoff
rpc_retries_total = Counter(
    "gasbump_rpc_retries_total",
    "Read calls retried after a failure",
    labels=["operation"],
)
rpc_failures_total = Counter(
    "gasbump_rpc_failures_total",
    "Read calls that failed after every retry",
    labels=["operation"],
)

# kind: initial | replacement, status: accepted | rejected
submissions_total = Counter(
    "gasbump_submissions_total",
    "Transactions sent to the node",
    labels=["kind", "status"],
)

# outcome: confirmed, a lowercased error kind, or error
escalation_outcomes_total = Counter(
    "gasbump_escalation_outcomes_total",
    "Terminal outcomes of escalation sequences",
    labels=["outcome"],
)
escalation_rounds = Histogram(
    "gasbump_escalation_rounds",
    "Rounds run before an escalation sequence terminated",
    buckets=(0, 1, 2, 3, 4, 5, 10),
)
escalations_in_flight = Gauge(
    "gasbump_escalations_in_flight",
    "Escalation sequences currently running",
)

REGISTRY: tuple[_Metric, ...] = (
    rpc_retries_total,
    rpc_failures_total,
    submissions_total,
    escalation_outcomes_total,
    escalation_rounds,
    escalations_in_flight,
)


def generate_metrics() -> str:
    """Render every registered metric as one Prometheus scrape body."""
    return "\n\n".join(metric.to_prometheus() for metric in REGISTRY) + "\n"


class MetricsHandler(BaseHTTPRequestHandler):
    """Serves ``/metrics`` for scrapes and ``/health`` for liveness checks."""

    def do_GET(self):
        if self.path == "/metrics":
            self._reply(200, generate_metrics().encode("utf-8"), "text/plain; version=0.0.4")
        elif self.path == "/health":
            self._reply(200, b"OK", "text/plain")
        else:
            self._reply(404, b"Not Found", "text/plain")

    def _reply(self, status: int, body: bytes, content_type: str) -> None:
        self.send_response(status)
        self.send_header("Content-Type", f"{content_type}; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug(f"metrics request: {format % args}")


class MetricsServer:
    """Background HTTP endpoint for the registry."""

    def __init__(self, host: str = "0.0.0.0", port: int = 8000):
        """Initialize metrics server.

        Args:
            host: Host to bind to
            port: Port to listen on (0 picks a free port; the bound port is
                written back on start)
        """
        self.host = host
        self.port = port
        self._server: Optional[ThreadingHTTPServer] = None

    def start(self) -> None:
        if self._server is not None:
            logger.warning("Metrics server already running")
            return

        self._server = ThreadingHTTPServer((self.host, self.port), MetricsHandler)
        self.port = self._server.server_address[1]
        threading.Thread(
            target=self._server.serve_forever, name="gasbump-metrics", daemon=True
        ).start()
        logger.info(f"Metrics server started on http://{self.host}:{self.port}/metrics")

    def stop(self) -> None:
        if self._server is None:
            return
        server, self._server = self._server, None
        server.shutdown()
        server.server_close()
        logger.info("Metrics server stopped")

    @property
    def is_running(self) -> bool:
        return self._server is not None
