"""Settings lookup for the personalization app.

Values come from the ``PERSONALIZATION`` dict in Django settings; anything
missing falls back to ``DEFAULTS``. Nested dicts are merged one level deep.
"""

from django.conf import settings

DEFAULTS = {
    # Vectorizer vocabularies
    "FEATURE_TAGS": [
        "beginner",
        "intermediate",
        "advanced",
        "programming",
        "mathematics",
        "science",
    ],
    "FEATURE_CATEGORIES": [
        "programming",
        "mathematics",
        "science",
        "literature",
        "business",
    ],
    "FEATURE_TOPICS": [
        "variables",
        "functions",
        "loops",
        "algorithms",
        "data structures",
    ],
    "MAX_DURATION_SECONDS": 3600,
    "MAX_DIFFICULTY": 5,
    # Profiles
    "PROFILE_CACHE_TTL": 3600,
    "PROFILE_WINDOW_DAYS": 30,
    # Paths
    "DAILY_BUDGET_MINUTES": 60,
    # Recommendation lifecycle
    "RECOMMENDATION_TTL_DAYS": 7,
    "BREAK_SUGGESTION_TTL_HOURS": 24,
    # Minimum data thresholds
    "MIN_PATTERN_EVENTS": 3,
    "MIN_CONTENT_HISTORY": 1,
    # Optional text generation collaborator
    "TEXT_GENERATION": {
        "PROVIDER": None,
        "MODEL_ID": "gpt-4o-mini",
        "API_KEY": None,
        "BASE_URL": None,
        "TIMEOUT_SECONDS": 10.0,
        "DEFAULT_PARAMS": {"temperature": 0.4, "max_tokens": 256},
    },
    # Store implementations used by factories.build_aggregator(). The in-memory
    # stores start empty per process; deployments point these at real stores.
    "COLLABORATORS": {
        "ACTIVITY_STORE": "apps.personalization.stores.InMemoryActivityStore",
        "CONTENT_CATALOG": "apps.personalization.stores.InMemoryContentCatalog",
        "ENROLLMENT_STORE": "apps.personalization.stores.InMemoryEnrollmentStore",
        "PERFORMANCE_STORE": "apps.personalization.stores.InMemoryPerformanceStore",
        "RECOMMENDATION_REPOSITORY": "apps.personalization.repositories.DjangoRecommendationRepository",
        "COLLABORATIVE_PROVIDER": "apps.personalization.collaborative.NullCollaborativeProvider",
    },
    # Batch generation
    "BATCH_CONCURRENCY": 5,
    "ACTIVE_USER_WINDOW_DAYS": 7,
}


def get_setting(name: str):
    """Return a personalization setting, merged over its default."""
    if name not in DEFAULTS:
        raise KeyError(f"Unknown personalization setting: {name}")

    user_settings = getattr(settings, "PERSONALIZATION", {}) or {}
    default = DEFAULTS[name]

    if name not in user_settings:
        return default

    value = user_settings[name]
    if isinstance(default, dict) and isinstance(value, dict):
        return {**default, **value}
    return value
