"""
Heartbeat scheduler for periodic background tasks (idle-stall detection).

Tasks run cooperatively on one daemon thread. A failing task is logged and
never stops the loop.
"""

import threading
import time
from typing import Callable, Dict, Optional

from .config import is_heartbeat_enabled
from ..util.logging import logger


tasks: Dict[str, Dict] = {}  # task_name -> {func, interval, last_run}
running = False
shutdown_event: Optional[threading.Event] = None
_thread: Optional[threading.Thread] = None

TICK_SEC = 1.0


def register_task(name: str, interval_sec: int, func: Callable, run_immediately: bool = False):
    """
    Register a task to be executed periodically.

    Args:
        name: Unique task identifier
        interval_sec: How often to run this task in seconds
        func: Function to call (should be fast and not block)
        run_immediately: Run on the first tick instead of after one interval
    """
    if not callable(func):
        raise ValueError(f"Task function must be callable: {func}")

    if interval_sec < 1:
        raise ValueError(f"Interval must be >= 1 second: {interval_sec}")

    tasks[name] = {
        "func": func,
        "interval": interval_sec,
        "last_run": None if run_immediately else time.monotonic(),
    }

    logger.info(f"Registered heartbeat task '{name}' (every {interval_sec}s)")


def unregister_task(name: str):
    """Remove a task from the registry."""
    if name in tasks:
        del tasks[name]
        logger.info(f"Unregistered heartbeat task '{name}'")


def list_tasks():
    """Return list of registered task names."""
    return list(tasks.keys())


def should_run_task(name: str, task_info: Dict) -> bool:
    """Check if a task should run this cycle."""
    if task_info["last_run"] is None:
        return True

    elapsed = time.monotonic() - task_info["last_run"]
    return elapsed >= task_info["interval"]


def run_task(name: str, task_info: Dict):
    """Execute a task and record timing."""
    start_time = time.monotonic()

    try:
        task_info["func"]()
    except Exception as e:
        end_time = time.monotonic()
        task_info["last_run"] = end_time
        logger.log_heartbeat_task(name, start_time, end_time, status="failed", details={"error": str(e)[:100]})
        raise RuntimeError(f"Task '{name}' failed after {end_time - start_time:.2f}s: {e}")

    end_time = time.monotonic()
    task_info["last_run"] = end_time
    logger.log_heartbeat_task(name, start_time, end_time)


def tick():
    """Run every task that is due. Errors are isolated per task."""
    for name, task_info in list(tasks.items()):
        if should_run_task(name, task_info):
            try:
                run_task(name, task_info)
            except RuntimeError as e:
                logger.error(f"Heartbeat task error: {e}")


def _loop(stop_event: threading.Event):
    global running
    try:
        while not stop_event.is_set():
            tick()
            stop_event.wait(TICK_SEC)
    finally:
        running = False
        logger.info("Heartbeat loop stopped")


def start():
    """Start the heartbeat loop on a daemon thread. Returns the thread, or None if disabled."""
    global running, shutdown_event, _thread

    if not is_heartbeat_enabled():
        logger.info("Heartbeat disabled (HEARTBEAT_ENABLED=false). Skipping start.")
        return None

    if running:
        raise RuntimeError("Heartbeat already running")

    running = True
    shutdown_event = threading.Event()
    _thread = threading.Thread(target=_loop, args=(shutdown_event,), name="heartbeat", daemon=True)
    _thread.start()

    logger.info(f"Started heartbeat loop with tasks: {list_tasks()}")
    return _thread


def stop(timeout: float = 5.0):
    """Stop the heartbeat loop gracefully."""
    global running

    if not running:
        logger.info("Heartbeat not running")
        return

    logger.info("Stopping heartbeat loop...")
    if shutdown_event:
        shutdown_event.set()
    if _thread is not None:
        _thread.join(timeout)
    running = False


def get_status():
    """Return current heartbeat status for monitoring."""
    if not is_heartbeat_enabled():
        return {"status": "disabled", "reason": "HEARTBEAT_ENABLED=false"}

    return {
        "status": "running" if running else "stopped",
        "tasks": {
            name: {
                "interval_sec": info["interval"],
                "last_run": info["last_run"],
                "next_run": info["last_run"] + info["interval"] if info["last_run"] is not None else None
            }
            for name, info in tasks.items()
        },
    }
