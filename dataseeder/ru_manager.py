"""
Request Unit (RU) management for paged reads.

After every page the observed request charge is compared with the configured
RU budget and the next page size (and an optional pause) is derived from it.
The state is an immutable value so the policy can be exercised without any
network code.
"""

import dataclasses
import logging


# Page size never shrinks below this many documents
MIN_PAGE_SIZE = 10

# Shrink by 30% when over budget, grow by 20% when under half of it
SHRINK_FACTOR = 0.7
GROWTH_FACTOR = 1.2
GROWTH_THRESHOLD = 0.5

# Pause per RU consumed over budget
DELAY_MS_PER_EXCESS_RU = 100


@dataclasses.dataclass(frozen=True)
class RUBudgetState:
    """
    Page sizing state carried between sequential page fetches.

    Attributes:
        max_ru: RU budget for a single page
        page_size_ceiling: Configured page size; growth never exceeds it
        current_page_size: Page size to request next
        last_delay_ms: Pause to apply before the next request
    """

    max_ru: float
    page_size_ceiling: int
    current_page_size: int
    last_delay_ms: int = 0

    @classmethod
    def initial(cls, max_ru: float, page_size: int) -> "RUBudgetState":
        return cls(max_ru=max_ru, page_size_ceiling=page_size, current_page_size=page_size)


def adjust_page_size(state: RUBudgetState, request_charge: float) -> RUBudgetState:
    """
    Derive the next RU state from the charge of the page just fetched.

    Args:
        state: State used for the page just fetched
        request_charge: RU charge reported for that page

    Returns:
        New state holding the next page size and the delay to apply
    """
    if request_charge > state.max_ru:
        floor = min(MIN_PAGE_SIZE, state.page_size_ceiling)
        new_page_size = max(floor, int(state.current_page_size * SHRINK_FACTOR))
        excess_ru = request_charge - state.max_ru
        delay_ms = int(excess_ru * DELAY_MS_PER_EXCESS_RU)
        logging.debug(
            f"RU throttling: consumed {request_charge} RUs (limit: {state.max_ru}), "
            f"reducing page size to {new_page_size}, waiting {delay_ms}ms"
        )
        return dataclasses.replace(
            state, current_page_size=new_page_size, last_delay_ms=delay_ms
        )

    if (
        request_charge < state.max_ru * GROWTH_THRESHOLD
        and state.current_page_size < state.page_size_ceiling
    ):
        new_page_size = min(
            state.page_size_ceiling, int(state.current_page_size * GROWTH_FACTOR)
        )
        logging.debug(
            f"RU optimization: consumed {request_charge} RUs (limit: {state.max_ru}), "
            f"increasing page size to {new_page_size}"
        )
        return dataclasses.replace(
            state, current_page_size=new_page_size, last_delay_ms=0
        )

    return dataclasses.replace(state, last_delay_ms=0)
