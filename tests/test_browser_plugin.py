"""
Browser plugin tests.

The vendor SDK is replaced by FakeSdk handles created through an SdkRegistry.
"""

from __future__ import annotations

import pytest

from analytics_plugin_amplitude import (
    AmplitudeBrowserPlugin,
    ConfigurationError,
    PluginNotReadyError,
    PluginState,
    SdkRegistry,
    amplitude_browser,
    sdk_registry,
)


@pytest.fixture
def browser_plugin(fake_sdks, analytics):
    registry, created = fake_sdks
    plugin = amplitude_browser({"apiKey": "token", "options": {"batchEvents": True}}, registry)
    plugin.initialize({"config": plugin.config, "instance": analytics})
    return plugin, created["$default_instance"]


class TestSdkRegistry:
    """Tests for SdkRegistry."""

    def test_instances_created_once(self, fake_sdks):
        registry, created = fake_sdks

        first = registry.get_instance()
        again = registry.get_instance(None)

        assert first is again
        assert list(created) == ["$default_instance"]
        assert len(registry) == 1

    def test_project_names_are_case_insensitive(self, fake_sdks):
        registry, created = fake_sdks

        assert registry.get_instance("Marketing") is registry.get_instance("marketing")
        assert "MARKETING" in registry
        assert registry.names() == ["marketing"]

    def test_projects_are_independent(self, fake_sdks):
        registry, _ = fake_sdks

        assert registry.get_instance("a") is not registry.get_instance("b")
        assert registry.names() == ["a", "b"]

    def test_missing_factory(self):
        registry = SdkRegistry()

        with pytest.raises(ConfigurationError, match="factory"):
            registry.get_instance()
        assert len(registry) == 0

    def test_set_factory(self):
        registry = SdkRegistry()
        registry.set_factory(lambda name: f"sdk:{name}")

        assert registry.get_instance("x") == "sdk:x"
        assert "" not in registry
        assert 42 not in registry


class TestInitialize:
    """Tests for browser plugin initialization."""

    def test_factory_defaults_to_shared_registry(self):
        plugin = amplitude_browser({"apiKey": "token"})

        assert isinstance(plugin, AmplitudeBrowserPlugin)
        assert plugin.amplitude is sdk_registry
        assert plugin.name == "amplitude"

    def test_initialize_calls_sdk(self, browser_plugin):
        plugin, sdk = browser_plugin

        assert sdk.calls[0] == ("init", ("token", None, {"batchEvents": True}))
        assert sdk.calls[1] == ("set_device_id", ("anon-123",))
        assert plugin.client is sdk

    def test_ready_only_after_sdk_completion(self, browser_plugin):
        plugin, sdk = browser_plugin

        assert plugin.state is PluginState.INITIALIZING
        assert plugin.loaded() is False

        sdk.finish_init()

        assert plugin.state is PluginState.READY
        assert plugin.loaded() is True

    def test_synchronous_completion(self, analytics):
        from conftest import FakeSdk

        registry = SdkRegistry(lambda name: FakeSdk(name, complete_init=True))
        plugin = amplitude_browser({"apiKey": "token"}, registry)
        plugin.initialize({"config": plugin.config, "instance": analytics})

        assert plugin.loaded() is True

    def test_project_name_selects_instance(self, fake_sdks, analytics):
        registry, created = fake_sdks
        config = {"apiKey": "token", "projectName": "Secondary"}
        plugin = amplitude_browser(config, registry)
        plugin.initialize({"config": config, "instance": analytics})

        assert plugin.client is created["secondary"]
        assert "$default_instance" not in created

    def test_two_projects_in_one_process(self, fake_sdks, analytics):
        registry, created = fake_sdks
        first = amplitude_browser({"apiKey": "k1", "projectName": "one"}, registry)
        second = amplitude_browser({"apiKey": "k2", "projectName": "two"}, registry)
        first.initialize({"config": first.config, "instance": analytics})
        second.initialize({"config": second.config, "instance": analytics})

        first.track({"payload": {"event": "A"}})
        second.track({"payload": {"event": "B"}})

        assert created["one"].calls_named("log_event") == [("A", None)]
        assert created["two"].calls_named("log_event") == [("B", None)]

    @pytest.mark.parametrize(
        "config",
        [{}, {"apiKey": None}, {"apiKey": "token", "options": 3}],
        ids=["no-key", "null-key", "bad-options"],
    )
    def test_invalid_config_makes_no_sdk_call(self, config, fake_sdks, analytics):
        registry, created = fake_sdks
        plugin = amplitude_browser(config, registry)

        with pytest.raises(ConfigurationError):
            plugin.initialize({"config": config, "instance": analytics})

        assert created == {}
        assert plugin.state is PluginState.UNINITIALIZED

    def test_failed_sdk_init_leaves_plugin_uninitialized(self, analytics):
        class BrokenSdk:
            def __init__(self, name):
                self.name = name

            def init(self, api_key, user_id, options, on_complete):
                raise RuntimeError("sdk failed to load")

        registry = SdkRegistry(BrokenSdk)
        plugin = amplitude_browser({"apiKey": "token"}, registry)

        with pytest.raises(RuntimeError, match="sdk failed"):
            plugin.initialize({"config": plugin.config, "instance": analytics})

        assert plugin.state is PluginState.UNINITIALIZED
        assert plugin.client is None
        with pytest.raises(PluginNotReadyError):
            plugin.track({"payload": {"event": "A"}})

    def test_repeated_initialize_ignored(self, browser_plugin, analytics):
        plugin, sdk = browser_plugin
        plugin.initialize({"config": plugin.config, "instance": analytics})

        assert len(sdk.calls_named("init")) == 1


class TestHooks:
    """Tests for identify / track / page delegation."""

    def test_identify_sets_user_and_replaces_properties(self, browser_plugin):
        plugin, sdk = browser_plugin
        traits = {"plan": "pro"}

        plugin.identify({"payload": {"userId": "user-1", "traits": traits}})

        assert sdk.calls_named("set_user_id") == [("user-1",)]
        assert sdk.calls_named("set_user_properties") == [(traits,)]

    def test_track_forwards_event(self, browser_plugin):
        plugin, sdk = browser_plugin

        plugin.track({"payload": {"event": "Checkout", "properties": {"total": 12}, "options": {}}})

        assert sdk.calls_named("log_event") == [("Checkout", {"total": 12})]

    def test_page_uses_translator(self, browser_plugin):
        plugin, sdk = browser_plugin

        plugin.page({"payload": {"properties": {"p1": "v1"}}})
        plugin.page({"payload": {"properties": {"p2": "v2"}, "options": {"eventType": "T1"}}})

        assert sdk.calls_named("log_event") == [("Page View", {"p1": "v1"}), ("T1", {"p2": "v2"})]

    def test_hooks_forward_while_initializing(self, browser_plugin):
        """The SDK queues calls made before its init completes."""
        plugin, sdk = browser_plugin
        assert not plugin.loaded()

        plugin.track({"payload": {"event": "Early"}})

        assert sdk.calls_named("log_event") == [("Early", None)]

    @pytest.mark.parametrize("hook", ["identify", "track", "page"])
    def test_hooks_before_initialize(self, hook, fake_sdks):
        registry, _ = fake_sdks
        plugin = amplitude_browser({"apiKey": "token"}, registry)

        with pytest.raises(PluginNotReadyError):
            getattr(plugin, hook)({"payload": {}})
