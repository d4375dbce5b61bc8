"""Rule processor registry: rule name -> processor.

Registration is expected during application setup. Comparisons only read the mapping, so a
populated registry can be shared by concurrent comparisons; do not register while they run.
"""

import logging

from devcompat.compat.processors import RuleProcessor, builtin_processors
from devcompat.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_PROCESSOR = "default"


class RuleProcessorRegistry:
    """Mutable mapping of rule names to processors, pre-populated with the built-ins."""

    def __init__(self, include_builtins: bool = True, settings: Settings | None = None) -> None:
        self._processors: dict[str, RuleProcessor] = builtin_processors(settings) if include_builtins else {}

    def register(self, name: str, processor: RuleProcessor) -> None:
        """Register ``processor`` under ``name``, replacing any existing one.

        Raises
        ------
        ValueError
            If ``name`` is empty.
        TypeError
            If ``processor`` has no callable ``process``.
        """
        if not name or not name.strip():
            raise ValueError("rule processor name must be non-empty")
        if not callable(getattr(processor, "process", None)):
            raise TypeError(f"rule processor {name!r} must define process(rule, context)")
        if name in self._processors:
            logger.info("Replacing rule processor %s", name)
        else:
            logger.info("Registered rule processor %s", name)
        self._processors[name] = processor

    def unregister(self, name: str) -> None:
        self._processors.pop(name, None)

    def get(self, name: str) -> RuleProcessor | None:
        return self._processors.get(name)

    def resolve(self, name: str) -> RuleProcessor | None:
        """Processor for ``name``, falling back to the default expression processor."""
        processor = self._processors.get(name)
        if processor is None:
            processor = self._processors.get(DEFAULT_PROCESSOR)
        return processor

    def names(self) -> list[str]:
        return list(self._processors)

    def __contains__(self, name: object) -> bool:
        return name in self._processors

    def __len__(self) -> int:
        return len(self._processors)
