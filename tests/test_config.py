"""Tests for configuration loading and provider matching."""

import json

from pydantic.alias_generators import to_camel, to_snake

from persanna.config.loader import load_config, rekey, save_config
from persanna.config.schema import Config, ProviderConfig


class TestConfig:

    def test_defaults(self):
        config = Config()
        defaults = config.agents.defaults

        assert defaults.max_iterations == 15
        assert defaults.timeout == 30
        assert defaults.memory_window == 512
        assert defaults.history_limit == 42
        assert defaults.temperature == 0.7
        assert config.persona.name == "Persanna"

    def test_load_camel_case_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "agents": {"defaults": {"model": "gpt-4o", "maxIterations": 3, "parseRetries": 0}},
            "providers": {"openai": {"apiKey": "sk-test"}},
            "tools": {"web": {"topK": 2}},
        }))

        config = load_config(path)

        assert config.agents.defaults.model == "gpt-4o"
        assert config.agents.defaults.max_iterations == 3
        assert config.agents.defaults.parse_retries == 0
        assert config.tools.web.top_k == 2
        assert config.providers.openai.api_key == "sk-test"

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "config.json"
        config = Config()
        config.agents.defaults.timeout = 12.5
        save_config(config, path)

        raw = json.loads(path.read_text())
        assert raw["agents"]["defaults"]["timeout"] == 12.5
        assert "maxIterations" in raw["agents"]["defaults"]
        assert load_config(path).agents.defaults.timeout == 12.5

    def test_broken_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{oops")
        assert load_config(path).agents.defaults.model == Config().agents.defaults.model

    def test_missing_file_gives_defaults(self, tmp_path):
        assert load_config(tmp_path / "absent.json").persona.name == "Persanna"

    def test_provider_matching(self):
        config = Config()
        config.providers.anthropic = ProviderConfig(api_key="ant")
        config.providers.openrouter = ProviderConfig(api_key="or")

        assert config.get_provider_name("claude-3-5-sonnet") == "anthropic"
        assert config.get_provider_name("openrouter/meta-llama") == "openrouter"
        assert config.get_api_base("openrouter/meta-llama") == "https://openrouter.ai/api/v1"
        # no openai key configured: falls back to the first configured provider
        assert config.get_provider_name("gpt-4o") == "openrouter"

    def test_no_provider(self):
        assert Config().get_provider() is None

    def test_non_object_file_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        assert load_config(path).persona.name == "Persanna"

    def test_header_names_survive_save_and_load(self, tmp_path):
        path = tmp_path / "config.json"
        config = Config()
        config.providers.openrouter = ProviderConfig(
            api_key="or", extra_headers={"HTTP-Referer": "https://persanna.app", "X-Title": "persanna"},
        )
        save_config(config, path)

        raw = json.loads(path.read_text())
        assert raw["providers"]["openrouter"]["extraHeaders"] == {
            "HTTP-Referer": "https://persanna.app", "X-Title": "persanna",
        }
        loaded = load_config(path).providers.openrouter
        assert loaded.extra_headers == {"HTTP-Referer": "https://persanna.app", "X-Title": "persanna"}

    def test_rekey(self):
        data = {"maxIterations": 3, "extraHeaders": {"X-Api-Key": "k"}, "likes": ["Tea"]}
        assert rekey(data, to_snake) == {"max_iterations": 3, "extra_headers": {"X-Api-Key": "k"}, "likes": ["Tea"]}
        assert rekey({"history_limit": 42, "top_k": 1}, to_camel) == {"historyLimit": 42, "topK": 1}
