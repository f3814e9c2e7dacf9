"""File-name conventions used by discovery heuristics.

Order matters in every list below: earlier entries win.
"""

from __future__ import annotations

from hubresolve.models.preferences import DecoderVariant, DevicePreference, Quantization

MODEL_EXTENSION = ".onnx"

DIFFUSION_PIPELINE_DIRECTORIES = frozenset({
    "text_encoder", "text_encoder_2", "unet", "vae_decoder", "vae_encoder", "vae",
})
DIFFUSION_MIN_COMPONENTS = 2

ENCODER_PATTERNS = [
    "encoder_model.onnx",
    "encoder_model_quantized.onnx",
    "encoder_model_fp16.onnx",
    "encoder_model_int8.onnx",
    "encoder_model_int4.onnx",
    "encoder.onnx",
]

DECODER_PATTERNS = [
    "decoder_model_merged.onnx",
    "decoder_model_merged_quantized.onnx",
    "decoder_model_merged_fp16.onnx",
    "decoder_model_merged_int8.onnx",
    "decoder_model_merged_int4.onnx",
    "decoder_model.onnx",
    "decoder_model_quantized.onnx",
    "decoder_model_fp16.onnx",
    "decoder_model_int8.onnx",
    "decoder_model_int4.onnx",
    "decoder_with_past_model.onnx",
    "decoder.onnx",
]

# Base-name stripping tries these in order, so _int4 is seen before _q4.
QUANTIZATION_SUFFIXES = ["_int4", "_int8", "_fp16", "_uint8", "_quantized", "_q4", "_q8"]

QUANTIZATION_TOKENS: dict[Quantization, str] = {
    Quantization.INT4: "_int4",
    Quantization.INT8: "_int8",
    Quantization.FP16: "_fp16",
}

# Suffixes that pair an encoder with its decoder.
ROLE_MATCH_SUFFIXES = ["_int4", "_int8", "_fp16", "_quantized"]

# Checked in order; a decoder carrying neither token is the standard variant.
DECODER_VARIANT_TOKENS: dict[DecoderVariant, str] = {
    DecoderVariant.MERGED: "merged",
    DecoderVariant.WITH_PAST: "with_past",
}

PREFERRED_SUBFOLDERS = ["onnx", "cpu", "cpu-int4", "cpu-int8", "default"]

DEVICE_KEYWORDS: dict[DevicePreference, tuple[str, ...]] = {
    DevicePreference.CUDA: ("cuda", "gpu"),
    DevicePreference.DIRECTML: ("directml", "dml"),
    DevicePreference.COREML: ("coreml",),
}
DEFAULT_DEVICE_KEYWORDS = ("cpu",)

QUANTIZATION_KEYWORDS: dict[Quantization, str] = {
    Quantization.INT4: "int4",
    Quantization.INT8: "int8",
    Quantization.FP16: "fp16",
}

CONFIG_FILE_NAMES = frozenset({
    "config.json",
    "tokenizer.json",
    "tokenizer_config.json",
    "vocab.json",
    "vocab.txt",
    "merges.txt",
    "special_tokens_map.json",
    "sentencepiece.bpe.model",
    "generation_config.json",
    "preprocessor_config.json",
    "genai_config.json",
    "scheduler_config.json",
    "model_index.json",
})

PIPELINE_CONFIG_DIRECTORIES = [
    "tokenizer",
    "scheduler",
    "feature_extractor",
    "text_encoder",
    "text_encoder_2",
    "safety_checker",
    "unet",
    "vae_decoder",
    "vae_encoder",
    "vae",
]
