from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

from loguru import logger

from .errors import AllProvidersExhausted
from .quote_sources.base import PriceInfo, ProviderDescriptor

T = TypeVar("T")

REFERENCE_LABEL = "reference"


@dataclass(frozen=True, slots=True)
class CascadeOutcome(Generic[T]):
    value: Optional[T]
    provider: Optional[str]
    attempts: Tuple[str, ...] = ()
    meaningful: bool = False


async def first_meaningful(
    providers: Sequence[Tuple[str, Callable[[], Awaitable[Optional[T]]]]],
    is_meaningful: Callable[[T], bool],
    *,
    is_partial: Callable[[T], bool] = lambda value: value is not None,
    context: str = "cascade",
) -> CascadeOutcome[T]:
    """Try ``providers`` strictly in order and stop at the first meaningful value.

    A provider that raises is logged and skipped. A value that is not
    meaningful but still counts as partial is remembered; if nothing
    meaningful turns up, the last partial value is returned instead.
    """
    attempts: List[str] = []
    last_partial: Optional[T] = None
    last_partial_provider: Optional[str] = None

    for name, fetch in providers:
        try:
            value = await fetch()
        except Exception as exc:
            attempts.append(f"{name}: {type(exc).__name__}: {exc}")
            logger.debug("{} provider {} failed: {}", context, name, exc)
            continue

        if value is not None and is_meaningful(value):
            return CascadeOutcome(value=value, provider=name, attempts=tuple(attempts), meaningful=True)

        attempts.append(f"{name}: insufficient")
        if value is not None and is_partial(value):
            last_partial = value
            last_partial_provider = name
        logger.debug("{} provider {} returned no usable data", context, name)

    return CascadeOutcome(value=last_partial, provider=last_partial_provider, attempts=tuple(attempts))


@dataclass(frozen=True, slots=True)
class Resolution:
    info: PriceInfo
    fallback_used: bool
    provider_label: Optional[str]

    def to_dict(self) -> dict:
        return {
            **self.info.to_dict(),
            "fallback_used": self.fallback_used,
            "provider_label": self.provider_label,
        }


class QuoteResolver:
    """Resolves one instrument from an ordered provider cascade.

    With ``require_complete`` a result needs both a price and a change to
    stop the cascade; anything carrying one of them is kept as the partial
    answer. Otherwise a single populated field is enough.
    """

    async def resolve(
        self,
        instrument: str,
        providers: Sequence[ProviderDescriptor],
        fallback: Optional[PriceInfo] = None,
        *,
        require_complete: bool = False,
    ) -> Resolution:
        is_meaningful = _is_complete if require_complete else _is_meaningful

        outcome = await first_meaningful(
            [(descriptor.name, descriptor.fetch) for descriptor in providers],
            is_meaningful,
            is_partial=_is_meaningful,
            context=instrument,
        )

        if outcome.value is not None:
            if not outcome.meaningful:
                logger.info("{} resolved to a partial quote from {}", instrument, outcome.provider)
            return Resolution(info=outcome.value, fallback_used=False, provider_label=outcome.provider)

        if fallback is not None:
            logger.warning("{} live providers exhausted; using reference data", instrument)
            return Resolution(info=fallback, fallback_used=True, provider_label=REFERENCE_LABEL)

        logger.error("{} has no live data and no reference entry", instrument)
        raise AllProvidersExhausted(instrument, outcome.attempts)


def _is_meaningful(info: PriceInfo) -> bool:
    return info.is_meaningful


def _is_complete(info: PriceInfo) -> bool:
    return info.is_complete