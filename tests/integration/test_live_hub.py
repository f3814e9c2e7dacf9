"""Discovery against the public model hub (opt-in, needs network)."""

from __future__ import annotations

import pytest

from hubresolve.core.config import AppSettings, CacheConfig
from hubresolve.models.discovery import Architecture
from hubresolve.models.preferences import ModelPreferences
from hubresolve.service import ResolutionService
from tests.fakes import MemoryListingCache
from tests.integration.conftest import skip_no_live_hub


@skip_no_live_hub
class TestLiveHub:
    @pytest.fixture
    def service(self, tmp_path):
        svc = ResolutionService(
            AppSettings(cache=CacheConfig(root=str(tmp_path))), listing_cache=MemoryListingCache(),
        )
        yield svc
        svc.close()

    def test_sentence_embedder(self, service):
        result = service.discover("Xenova/all-MiniLM-L6-v2", ModelPreferences.low_memory())
        assert result.subfolder == "onnx"
        assert "onnx/model_int8.onnx" in result.primary_files
        assert "tokenizer.json" in result.config_files

    def test_whisper_roles(self, service):
        result = service.discover("onnx-community/whisper-tiny")
        assert result.architecture == Architecture.ENCODER_DECODER
        assert result.decoder_file.endswith("decoder_model_merged.onnx")
