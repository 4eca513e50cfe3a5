"""Keep the change stream busy with inserts and updates.

Worker threads share one client and run batches of random operations at a
pace derived from the target changes per second. A stats thread logs the
running throughput until the stop flag is set.
"""
import logging
import random
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from .config import GeneratorSettings
from .sample_data import CUSTOMERS_COLLECTION, ORDERS_COLLECTION, ORDER_STATUSES, make_email

logger = logging.getLogger(__name__)

FIRST_NAMES = (
    "James", "Mary", "John", "Patricia", "Robert", "Jennifer", "Michael", "Linda",
    "William", "Elizabeth", "David", "Barbara", "Richard", "Susan", "Joseph", "Jessica",
    "Thomas", "Sarah", "Charles", "Karen", "Christopher", "Nancy", "Daniel", "Lisa",
    "Matthew", "Margaret", "Anthony", "Betty", "Mark", "Sandra", "Donald", "Ashley",
)

LAST_NAMES = (
    "Smith", "Johnson", "Williams", "Jones", "Brown", "Davis", "Miller", "Wilson",
    "Moore", "Taylor", "Anderson", "Thomas", "Jackson", "White", "Harris", "Martin",
    "Thompson", "Garcia", "Martinez", "Robinson", "Clark", "Rodriguez", "Lewis", "Lee",
    "Walker", "Hall", "Allen", "Young", "Hernandez", "King", "Wright", "Lopez",
)


class IdAllocator:
    """Hands out increasing integer ids, safe to share between threads."""

    def __init__(self, start: int):
        self._next = start
        self._lock = threading.Lock()

    def next(self) -> int:
        with self._lock:
            value = self._next
            self._next += 1
            return value

    @classmethod
    def after_max(cls, collection, floor: int = 0) -> "IdAllocator":
        # ObjectIds sort above numbers, so only numeric ids are considered
        top = collection.find_one(
            {"_id": {"$type": "number"}}, {"_id": 1}, sort=[("_id", DESCENDING)]
        )
        current = int(top["_id"]) if top else floor
        return cls(max(current, floor) + 1)


class Stats:
    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self.total_operations = 0
        self.start_time = clock()
        self.last_log_time = self.start_time
        self.last_count = 0

    def add(self, count: int):
        with self._lock:
            self.total_operations += count

    def snapshot(self) -> dict:
        now = self._clock()
        with self._lock:
            total = self.total_operations
        since_start = max(now - self.start_time, 1e-9)
        since_last = max(now - self.last_log_time, 1e-9)
        snap = {
            "total": total,
            "overall_cps": total / since_start,
            "recent_cps": (total - self.last_count) / since_last,
            "elapsed": since_start,
        }
        self.last_log_time = now
        self.last_count = total
        return snap


@dataclass
class GeneratorReport:
    total_operations: int
    duration_seconds: float
    actual_cps: float
    target_cps: int

    @property
    def efficiency(self) -> float:
        return (self.actual_cps / self.target_cps) * 100 if self.target_cps else 0.0


class ChangeGenerator:
    def __init__(self, db, settings: Optional[GeneratorSettings] = None, rng=None):
        self.db = db
        self.settings = settings or GeneratorSettings.from_env()
        self.rng = rng or random.Random(self.settings.seed)
        self.customers = db[CUSTOMERS_COLLECTION]
        self.orders = db[ORDERS_COLLECTION]
        self.customer_ids = IdAllocator.after_max(self.customers, floor=1000)
        self.order_ids = IdAllocator.after_max(self.orders, floor=2000)

    # ======== Operations ========
    def insert_customer(self, rng=None) -> Optional[int]:
        rng = rng or self.rng
        first = rng.choice(FIRST_NAMES)
        last = rng.choice(LAST_NAMES)
        doc = {
            "_id": self.customer_ids.next(),
            "first_name": first,
            "last_name": last,
            "email": make_email(first, last, rng.randrange(10000)),
            "created_at": datetime.now(timezone.utc),
        }
        try:
            self.customers.insert_one(doc)
        except PyMongoError as e:
            logger.debug("Customer insert failed: %s", e)
            return None
        return doc["_id"]

    def random_customer_id(self) -> Optional[int]:
        picked = list(self.customers.aggregate([{"$sample": {"size": 1}}, {"$project": {"_id": 1}}]))
        return picked[0]["_id"] if picked else None

    def insert_order(self, rng=None) -> Optional[int]:
        rng = rng or self.rng
        try:
            customer_id = self.random_customer_id()
        except PyMongoError as e:
            logger.debug("Customer lookup failed: %s", e)
            return None
        if customer_id is None:
            customer_id = self.insert_customer(rng)
            if customer_id is None:
                return None

        doc = {
            "_id": self.order_ids.next(),
            "customer_id": customer_id,
            "order_date": datetime.now(timezone.utc) - timedelta(days=rng.randrange(30)),
            "status": rng.choice(ORDER_STATUSES),
            "total": round(10.0 + rng.random() * 990.0, 2),
        }
        try:
            self.orders.insert_one(doc)
        except PyMongoError as e:
            logger.debug("Order insert failed: %s", e)
            return None
        return doc["_id"]

    def update_random_record(self, rng=None) -> bool:
        rng = rng or self.rng
        try:
            if rng.randrange(2) == 0:
                picked = list(self.customers.aggregate([{"$sample": {"size": 1}}]))
                if not picked:
                    return False
                c = picked[0]
                email = make_email(c.get("first_name", "customer"), c.get("last_name", str(c["_id"])), rng.randrange(10000))
                result = self.customers.update_one({"_id": c["_id"]}, {"$set": {"email": email}})
            else:
                picked = list(self.orders.aggregate([{"$sample": {"size": 1}}, {"$project": {"_id": 1}}]))
                if not picked:
                    return False
                result = self.orders.update_one(
                    {"_id": picked[0]["_id"]},
                    {"$set": {"status": rng.choice(ORDER_STATUSES)}},
                )
        except PyMongoError as e:
            logger.debug("Update failed: %s", e)
            return False
        return result.matched_count > 0

    def execute_batch(self, rng=None) -> int:
        rng = rng or self.rng
        operations = (self.insert_customer, self.insert_order, self.update_random_record)
        applied = 0
        for _ in range(self.settings.batch_size):
            op = operations[rng.randrange(len(operations))]
            if op(rng):
                applied += 1
        return applied

    # ======== Run loop ========
    def _worker(self, worker_id: int, stats: Stats, stop: threading.Event):
        seed = None if self.settings.seed is None else self.settings.seed + worker_id
        rng = random.Random(seed)
        interval = self.settings.batch_interval_seconds
        while not stop.wait(interval):
            stats.add(self.execute_batch(rng))

    def _log_stats(self, stats: Stats, stop: threading.Event):
        while not stop.wait(self.settings.log_interval_seconds):
            s = stats.snapshot()
            logger.info(
                "Stats - Total ops: %d, Overall CPS: %.2f, Recent CPS: %.2f, Duration: %.1fs",
                s["total"], s["overall_cps"], s["recent_cps"], s["elapsed"],
            )

    def run(self, stop: Optional[threading.Event] = None) -> GeneratorReport:
        settings = self.settings
        stop = stop or threading.Event()
        stats = Stats()
        logger.info(
            "Starting change generator: target %d cps, %d workers, batch %d, every %.3fs",
            settings.target_cps, settings.concurrency, settings.batch_size,
            settings.batch_interval_seconds,
        )

        threads = [
            threading.Thread(target=self._worker, args=(i, stats, stop), name=f"generator-{i}", daemon=True)
            for i in range(settings.concurrency)
        ]
        threads.append(threading.Thread(target=self._log_stats, args=(stats, stop), name="generator-stats", daemon=True))
        for t in threads:
            t.start()

        try:
            stop.wait(settings.duration_seconds)
        finally:
            stop.set()
            for t in threads:
                t.join()

        duration = time.monotonic() - stats.start_time
        report = GeneratorReport(
            total_operations=stats.total_operations,
            duration_seconds=duration,
            actual_cps=stats.total_operations / duration if duration > 0 else 0.0,
            target_cps=settings.target_cps,
        )
        logger.info(
            "Data generation completed: %d ops in %.1fs, %.2f cps (%.2f%% of target %d)",
            report.total_operations, report.duration_seconds, report.actual_cps,
            report.efficiency, report.target_cps,
        )
        return report


def run_generator(db, settings: Optional[GeneratorSettings] = None) -> GeneratorReport:
    return ChangeGenerator(db, settings).run()
