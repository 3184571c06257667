"""
Base DNS provider interface.

This module defines the abstract base class that all provider adapters must
implement, plus the shared apply loop that executes diff actions with
bounded retries.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional

from ..core.diff_engine import diff
from ..core.errors import (
    ProviderAuthError,
    ProviderError,
    ProviderRequestError,
    ProviderUnavailableError,
)
from ..core.models import (
    Actions,
    ApplyResult,
    FailedOperation,
    ProviderConfig,
    Record,
    SyncOptions,
)

logger = logging.getLogger(__name__)

# asyncio.TimeoutError is only an alias of TimeoutError from Python 3.11 on.
TIMEOUT_ERRORS = (TimeoutError, asyncio.TimeoutError)


@dataclass
class RetryPolicy:
    """Exponential backoff for single record operations."""

    attempts: int = 3
    base_delay: float = 0.5
    max_delay: float = 8.0

    def delay(self, attempt: int) -> float:
        """Delay before retrying after the given (1-based) failed attempt."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


class DNSProvider(ABC):
    """Abstract base class for DNS provider adapters."""

    sleep: Callable[[float], Awaitable[None]] = staticmethod(asyncio.sleep)

    @abstractmethod
    async def fetch_records(self, config: ProviderConfig) -> List[Record]:
        """Get all canonical DNS records the provider account holds."""
        pass

    @abstractmethod
    async def create_record(self, config: ProviderConfig, record: Record) -> None:
        """Create a new DNS record."""
        pass

    @abstractmethod
    async def update_record(self, config: ProviderConfig, record: Record) -> None:
        """Update the existing record addressed by ``record.id``."""
        pass

    @abstractmethod
    async def delete_record(self, config: ProviderConfig, record: Record) -> None:
        """Delete a DNS record."""
        pass

    async def apply_records(
        self,
        config: ProviderConfig,
        desired: List[Record],
        options: SyncOptions,
        retry: Optional[RetryPolicy] = None,
    ) -> ApplyResult:
        """Fetch the current records, diff against desired and apply."""
        existing = await self.fetch_records(config)
        actions = diff(desired, existing, options)
        return await self.apply_actions(config, actions, retry)

    async def apply_actions(
        self,
        config: ProviderConfig,
        actions: Actions,
        retry: Optional[RetryPolicy] = None,
        result: Optional[ApplyResult] = None,
    ) -> ApplyResult:
        """
        Execute actions one at a time in update, create, delete order.

        Operations that still fail after the retry budget are collected in
        the result. A ProviderAuthError is never retried and aborts the
        whole apply. When ``result`` is given it is filled in as operations
        finish, so a caller that cancels the apply still sees what was done.
        """
        retry = retry or RetryPolicy()
        if result is None:
            result = ApplyResult()
        operations = {
            "update": self.update_record,
            "create": self.create_record,
            "delete": self.delete_record,
        }

        for action, record in actions.ordered():
            try:
                await self._with_retry(operations[action], config, record, retry)
            except ProviderAuthError:
                logger.error(f"Authentication failed on {config.name} while applying {action}")
                raise
            except ProviderError as e:
                logger.error(f"Failed to {action} record {record.type.value} {record.name}: {e}")
                result.failed_operations.append(FailedOperation(action, record, str(e)))
                continue

            if action == "update":
                result.updated += 1
                logger.info(f"Updated record: {record.type.value} {record.name} -> {record.content}")
            elif action == "create":
                result.created += 1
                logger.info(f"Created record: {record.type.value} {record.name} -> {record.content}")
            else:
                result.deleted += 1
                logger.info(f"Deleted record: {record.type.value} {record.name}")

        return result

    async def _with_retry(self, operation, config: ProviderConfig, record: Record, retry: RetryPolicy):
        attempt = 1
        while True:
            try:
                return await operation(config, record)
            except (ProviderAuthError, ProviderRequestError):
                raise
            except TIMEOUT_ERRORS as e:
                error = ProviderUnavailableError(
                    f"Request timed out: {str(e) or 'no response'}", config.name
                )
            except ProviderError as e:
                error = e

            if attempt >= retry.attempts:
                raise error
            delay = retry.delay(attempt)
            logger.warning(
                f"Attempt {attempt}/{retry.attempts} for {record.type.value} {record.name} "
                f"failed: {error}; retrying in {delay:.2f}s"
            )
            await self.sleep(delay)
            attempt += 1
