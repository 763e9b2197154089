import logging

from django.core.cache import caches
from django.utils.module_loading import import_string

from .conf import get_setting
from .profiles import LearningProfileService
from .services import RecommendationAggregator
from .text_generation import build_text_generator

logger = logging.getLogger(__name__)

IN_MEMORY_PREFIX = "apps.personalization.stores.InMemory"


def build_collaborator(key: str):
    """Instantiate the collaborator class configured under COLLABORATORS[key]."""
    dotted_path = get_setting("COLLABORATORS")[key]
    if dotted_path.startswith(IN_MEMORY_PREFIX):
        logger.warning(
            f"Collaborator {key} uses in-memory store {dotted_path}; it starts empty and "
            f"is not shared between processes. Configure PERSONALIZATION['COLLABORATORS'] for deployments."
        )
    return import_string(dotted_path)()


def build_aggregator(**overrides) -> RecommendationAggregator:
    """
    Wire a RecommendationAggregator from settings.

    Any constructor argument can be passed in `overrides` to replace the
    configured collaborator, e.g. ``build_aggregator(repository=repo)``.
    """
    activity_store = overrides.pop("activity_store", None) or build_collaborator("ACTIVITY_STORE")
    performance_store = overrides.pop("performance_store", None) or build_collaborator(
        "PERFORMANCE_STORE"
    )
    cache = overrides.pop("cache", None) or caches["default"]
    profile_service = overrides.pop("profile_service", None) or LearningProfileService(
        activity_store=activity_store,
        performance_store=performance_store,
        cache=cache,
    )

    if "text_generator" not in overrides:
        generator = build_text_generator()
        overrides["text_generator"] = generator if generator.enabled else None

    components = {
        "content_catalog": "CONTENT_CATALOG",
        "enrollment_store": "ENROLLMENT_STORE",
        "repository": "RECOMMENDATION_REPOSITORY",
        "collaborative_provider": "COLLABORATIVE_PROVIDER",
    }
    for name, key in components.items():
        if overrides.get(name) is None:
            overrides[name] = build_collaborator(key)

    return RecommendationAggregator(
        profile_service=profile_service,
        activity_store=activity_store,
        performance_store=performance_store,
        **overrides,
    )
