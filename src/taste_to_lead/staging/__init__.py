"""Virtual staging pipeline: prompts, quality gate, provider, job queue and furniture plans."""

import importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taste_to_lead.staging.planner import (  # noqa: F401
        Catalog,
        StagingPlan,
        generate_heuristic_plan,
        load_catalog,
    )
    from taste_to_lead.staging.prompts import build_staging_prompt  # noqa: F401
    from taste_to_lead.staging.provider import (  # noqa: F401
        GeminiImageGenerator,
        GeminiStagingProvider,
        StagingProvider,
        StagingProviderError,
    )
    from taste_to_lead.staging.queue import QueueClosedError, StagingQueue  # noqa: F401
    from taste_to_lead.staging.service import (  # noqa: F401
        BatchValidationError,
        StagingBatchRequest,
        StagingService,
    )

__all__ = [
    "BatchValidationError",
    "build_staging_prompt",
    "Catalog",
    "generate_heuristic_plan",
    "GeminiImageGenerator",
    "GeminiStagingProvider",
    "load_catalog",
    "QueueClosedError",
    "StagingBatchRequest",
    "StagingPlan",
    "StagingProvider",
    "StagingProviderError",
    "StagingQueue",
    "StagingService",
]

_LAZY_IMPORTS: dict[str, tuple[str, str]] = {
    "BatchValidationError": (".service", "BatchValidationError"),
    "build_staging_prompt": (".prompts", "build_staging_prompt"),
    "Catalog": (".planner", "Catalog"),
    "generate_heuristic_plan": (".planner", "generate_heuristic_plan"),
    "GeminiImageGenerator": (".provider", "GeminiImageGenerator"),
    "GeminiStagingProvider": (".provider", "GeminiStagingProvider"),
    "load_catalog": (".planner", "load_catalog"),
    "QueueClosedError": (".queue", "QueueClosedError"),
    "StagingBatchRequest": (".service", "StagingBatchRequest"),
    "StagingPlan": (".planner", "StagingPlan"),
    "StagingProvider": (".provider", "StagingProvider"),
    "StagingProviderError": (".provider", "StagingProviderError"),
    "StagingQueue": (".queue", "StagingQueue"),
    "StagingService": (".service", "StagingService"),
}


def __getattr__(name: str) -> object:
    if name in _LAZY_IMPORTS:
        module_path, attr = _LAZY_IMPORTS[name]
        mod = importlib.import_module(module_path, __name__)
        val = getattr(mod, attr)
        globals()[name] = val  # Cache so __getattr__ is only called once
        return val
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
