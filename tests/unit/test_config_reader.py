"""Tests for ModelConfigReader ordered lookups."""

from __future__ import annotations

import json

import pytest

from hubresolve.discovery.config_reader import (
    CONTEXT_LENGTH_LOOKUPS,
    DEFAULT_MAX_CONTEXT_LENGTH,
    ConfigLookup,
    ModelConfigReader,
)


def write_json(directory, name, data):
    directory.mkdir(parents=True, exist_ok=True)
    (directory / name).write_text(json.dumps(data), encoding="utf-8")


class TestContextLength:
    def test_genai_context_length_wins(self, tmp_path):
        write_json(tmp_path, "genai_config.json", {"model": {"context_length": 131072}})
        write_json(tmp_path, "config.json", {"max_position_embeddings": 4096})
        assert ModelConfigReader(tmp_path).max_context_length() == 131072

    def test_small_search_max_length_is_skipped(self, tmp_path):
        write_json(tmp_path, "genai_config.json", {"search": {"max_length": 256}})
        write_json(tmp_path, "config.json", {"n_positions": 2048})
        assert ModelConfigReader(tmp_path).max_context_length() == 2048

    def test_large_search_max_length_is_used(self, tmp_path):
        write_json(tmp_path, "genai_config.json", {"search": {"max_length": 8192}})
        assert ModelConfigReader(tmp_path).max_context_length() == 8192

    def test_default_without_configs(self, tmp_path):
        assert ModelConfigReader(tmp_path).max_context_length() == DEFAULT_MAX_CONTEXT_LENGTH

    @pytest.mark.parametrize("value", ["4096", True, None, 12.5])
    def test_non_integer_values_are_ignored(self, tmp_path, value):
        write_json(tmp_path, "config.json", {"max_position_embeddings": value, "n_positions": 1024})
        assert ModelConfigReader(tmp_path).max_context_length() == 1024

    def test_lookup_order_is_stable(self):
        assert [(item.file_name, item.path) for item in CONTEXT_LENGTH_LOOKUPS][:2] == [
            ("genai_config.json", "model.context_length"),
            ("genai_config.json", "model.max_position_embeddings"),
        ]


class TestOtherProperties:
    def test_model_type_and_vocab(self, tmp_path):
        write_json(tmp_path, "config.json", {"model_type": "whisper", "vocab_size": 51865})
        reader = ModelConfigReader(tmp_path)
        assert reader.model_type() == "whisper"
        assert reader.vocab_size() == 51865

    def test_genai_model_type_preferred(self, tmp_path):
        write_json(tmp_path, "genai_config.json", {"model": {"type": "phi3"}})
        write_json(tmp_path, "config.json", {"model_type": "phi"})
        assert ModelConfigReader(tmp_path).model_type() == "phi3"

    def test_fallback_directory(self, tmp_path):
        write_json(tmp_path, "config.json", {"vocab_size": 32000})
        write_json(tmp_path / "cpu-int4", "genai_config.json", {"model": {"context_length": 4096}})

        reader = ModelConfigReader(tmp_path / "cpu-int4", [tmp_path])

        assert reader.vocab_size() == 32000
        assert reader.max_context_length() == 4096

    def test_corrupt_file_is_skipped(self, tmp_path):
        (tmp_path / "config.json").write_text("{broken", encoding="utf-8")
        assert ModelConfigReader(tmp_path).model_type() is None

    def test_custom_lookup(self, tmp_path):
        write_json(tmp_path, "config.json", {"text_config": {"hidden_size": 768}})
        lookups = [ConfigLookup("config.json", "text_config.hidden_size")]
        assert ModelConfigReader(tmp_path).lookup(lookups) == 768
