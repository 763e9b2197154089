"""Tests for settings-driven aggregator wiring."""

from django.core.cache import caches
from django.test import SimpleTestCase, override_settings

from apps.personalization.collaborative import NullCollaborativeProvider
from apps.personalization.conf import DEFAULTS, get_setting
from apps.personalization.factories import build_aggregator, build_collaborator
from apps.personalization.repositories import (
    DjangoRecommendationRepository,
    InMemoryRecommendationRepository,
)
from apps.personalization.stores import InMemoryActivityStore, InMemoryContentCatalog


class GetSettingTests(SimpleTestCase):
    def test_defaults_apply(self):
        self.assertEqual(get_setting("DAILY_BUDGET_MINUTES"), DEFAULTS["DAILY_BUDGET_MINUTES"])

    @override_settings(PERSONALIZATION={"TEXT_GENERATION": {"PROVIDER": "anthropic"}})
    def test_nested_settings_are_merged(self):
        config = get_setting("TEXT_GENERATION")

        self.assertEqual(config["PROVIDER"], "anthropic")
        self.assertEqual(config["TIMEOUT_SECONDS"], DEFAULTS["TEXT_GENERATION"]["TIMEOUT_SECONDS"])

    def test_unknown_setting(self):
        with self.assertRaises(KeyError):
            get_setting("NOPE")


class BuildAggregatorTests(SimpleTestCase):
    def test_default_wiring(self):
        aggregator = build_aggregator()

        self.assertIsInstance(aggregator.activity_store, InMemoryActivityStore)
        self.assertIsInstance(aggregator.content_catalog, InMemoryContentCatalog)
        self.assertIsInstance(aggregator.repository, DjangoRecommendationRepository)
        self.assertIsInstance(aggregator.collaborative_provider, NullCollaborativeProvider)
        self.assertIsNone(aggregator.text_generator)
        self.assertIs(aggregator.profile_service.activity_store, aggregator.activity_store)

    def test_overrides_replace_collaborators(self):
        repository = InMemoryRecommendationRepository()

        aggregator = build_aggregator(repository=repository)

        self.assertIs(aggregator.repository, repository)

    @override_settings(
        PERSONALIZATION={
            "COLLABORATORS": {
                "RECOMMENDATION_REPOSITORY": "apps.personalization.repositories.InMemoryRecommendationRepository"
            }
        }
    )
    def test_collaborator_paths_come_from_settings(self):
        self.assertIsInstance(
            build_collaborator("RECOMMENDATION_REPOSITORY"), InMemoryRecommendationRepository
        )
        self.assertIsInstance(build_collaborator("ACTIVITY_STORE"), InMemoryActivityStore)

    def test_cache_override_with_prebuilt_profile_service(self):
        """A cache passed alongside a profile service is not forwarded to the aggregator."""
        profile_service = build_aggregator().profile_service

        aggregator = build_aggregator(profile_service=profile_service, cache=caches["default"])

        self.assertIs(aggregator.profile_service, profile_service)

    def test_in_memory_collaborators_log_a_warning(self):
        with self.assertLogs("apps.personalization.factories", level="WARNING") as logs:
            build_collaborator("ACTIVITY_STORE")

        self.assertIn("ACTIVITY_STORE", logs.output[0])
