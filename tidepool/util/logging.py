"""
Structured logging for click, admin, notification and heartbeat operations.
"""

import logging
from typing import Any, Dict


class StructuredLogger:
    """Structured logger for tide pool operations."""

    def __init__(self, name: str = "tidepool"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "error"):
            self.logger.error(message)
        elif status in ("rejected", "dropped", "expired"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_click(self, identity: str, status: str, count: int = None, reason: str = None):
        """Log a click attempt and its outcome."""
        details = {"identity": identity}
        if count is not None:
            details["count"] = count
        if reason:
            details["reason"] = reason

        self.log_operation("click", status, details)

    def log_admin_command(self, chat_id: str, command: str, status: str = "success", details: Dict[str, Any] = None):
        """Log an admin channel command."""
        log_details = {"chat_id": chat_id, "command": command}
        if details:
            log_details.update(details)

        self.log_operation(f"admin.{command.lstrip('/') or 'empty'}", status, log_details)

    def log_notification(self, status: str, text: str, attempt: int = None, error: str = None):
        """Log an outbound notification delivery."""
        details = {"text": text[:50] + "..." if len(text) > 50 else text}
        if attempt is not None:
            details["attempt"] = attempt
        if error:
            details["error"] = error[:100]

        self.log_operation("notify", status, details)

    def log_heartbeat_task(self, task_name: str, start_time: float, end_time: float, status: str = "success", details: Dict[str, Any] = None):
        """Log heartbeat task execution."""
        duration_ms = round((end_time - start_time) * 1000, 2)
        log_details = {"duration_ms": duration_ms}
        if details:
            log_details.update(details)
        elif status == "success":
            log_details["message"] = f"Heartbeat task '{task_name}' completed in {duration_ms}ms"
        elif status == "failed":
            log_details["message"] = f"Heartbeat task '{task_name}' failed after {duration_ms}ms"

        self.log_operation(f"heartbeat.{task_name}", status, log_details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)


# Global logger instance
logger = StructuredLogger()
