"""
Structured Exception Hierarchy

Exceptions raised by the control loop, its configuration layer and its
adapters. Each one carries an error code, a context dictionary and a
correlation ID so failures can be logged as structured records.
"""

from typing import Dict, Any, Optional
import uuid
from datetime import datetime, timezone


class ClutchException(Exception):
    """
    Base exception class for all Clutch-specific exceptions.

    Provides structured error information including error codes,
    context data, and correlation IDs for tracing.
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
        correlation_id: Optional[str] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}
        self.cause = cause
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
            "correlation_id": self.correlation_id,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None
        }


class ConfigurationError(ClutchException):
    """Raised when a loop, controller or configuration source is misconfigured."""

    def __init__(
        self,
        message: str,
        config_path: Optional[str] = None,
        parameter: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop('context', {})
        if config_path:
            context['config_path'] = config_path
        if parameter:
            context['parameter'] = parameter

        super().__init__(
            message=message,
            error_code=kwargs.pop('error_code', "CONFIG_ERROR"),
            context=context,
            **kwargs
        )


class ActuationError(ClutchException):
    """Raised when the actuator fails to apply a target size."""

    def __init__(
        self,
        message: str,
        metric: Optional[str] = None,
        target_size: Optional[float] = None,
        **kwargs
    ):
        context = kwargs.pop('context', {})
        if metric:
            context['metric'] = metric
        if target_size is not None:
            context['target_size'] = target_size

        super().__init__(
            message=message,
            error_code="ACTUATION_ERROR",
            context=context,
            **kwargs
        )


class ControlLoopError(ClutchException):
    """Raised when a control loop is used outside its lifecycle."""

    def __init__(self, message: str, metric: Optional[str] = None, **kwargs):
        context = kwargs.pop('context', {})
        if metric:
            context['metric'] = metric

        super().__init__(
            message=message,
            error_code="CONTROL_LOOP_ERROR",
            context=context,
            **kwargs
        )


class EventSourceError(ClutchException):
    """Raised when an event source delivers a payload that cannot be decoded."""

    def __init__(
        self,
        message: str,
        subject: Optional[str] = None,
        payload: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop('context', {})
        if subject:
            context['subject'] = subject
        if payload is not None:
            context['payload'] = payload

        super().__init__(
            message=message,
            error_code="EVENT_SOURCE_ERROR",
            context=context,
            **kwargs
        )
