"""Gate between planning and mutation."""

import logging
from collections.abc import Callable

from maintenance.enums import ConfirmationMode

logger = logging.getLogger(__name__)

_AFFIRMATIVE = {"y", "yes"}


class ConfirmationGate:
    """Decide whether a planned mutation may run.

    The input source is injectable so tests can script the answer.
    """

    def __init__(self, input_fn: Callable[[str], str] = input) -> None:
        self._input = input_fn

    def should_proceed(
        self,
        planned_count: int,
        mode: ConfirmationMode,
        prompt: str | None = None,
    ) -> bool:
        """Return True only when the mutation should run.

        Nothing to do always returns False. A dry run returns False. Auto-confirm
        returns True. Interactive mode asks and accepts only "y" or "yes".
        """
        if planned_count <= 0:
            return False
        if mode == ConfirmationMode.DRY_RUN:
            return False
        if mode == ConfirmationMode.AUTO_CONFIRM:
            return True

        message = prompt or f"Proceed with {planned_count} record(s)? (y/N): "
        try:
            answer = self._input(message)
        except EOFError:
            logger.info("No confirmation input available; treating as 'no'")
            return False
        return (answer or "").strip().lower() in _AFFIRMATIVE
