import asyncio
from dataclasses import dataclass, field
from typing import Protocol

import structlog

from friendpush.services.apns.client import TOKEN_LOG_PREFIX, DispatchOutcome
from friendpush.services.payloads import PushPayload

logger = structlog.get_logger()


class PushGateway(Protocol):
    async def deliver(self, device_token: str, payload: PushPayload) -> DispatchOutcome:
        ...


@dataclass
class DispatchSummary:
    """Settled outcomes of one fan-out, in the order the tokens were given."""

    outcomes: list[DispatchOutcome] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.delivered)

    @property
    def failed(self) -> int:
        return len(self.outcomes) - self.sent


async def dispatch_all(
    gateway: PushGateway,
    device_tokens: list[str],
    payload: PushPayload,
    max_concurrency: int = 0,
) -> DispatchSummary:
    """Deliver `payload` to every token concurrently and wait for all to settle.

    One failing delivery never cancels the others. `max_concurrency` caps the
    number of in-flight deliveries; 0 means no cap.
    """
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency > 0 else None

    async def _deliver_one(token: str) -> DispatchOutcome:
        if semaphore is None:
            return await gateway.deliver(token, payload)
        async with semaphore:
            return await gateway.deliver(token, payload)

    results = await asyncio.gather(
        *[_deliver_one(token) for token in device_tokens],
        return_exceptions=True,
    )

    summary = DispatchSummary()
    for token, result in zip(device_tokens, results):
        if isinstance(result, BaseException):
            logger.error(
                "push_delivery_crashed",
                token_prefix=token[:TOKEN_LOG_PREFIX],
                error_type=type(result).__name__,
                error=str(result),
            )
            summary.outcomes.append(DispatchOutcome.TRANSPORT_ERROR)
        else:
            summary.outcomes.append(result)
    return summary
