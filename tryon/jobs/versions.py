"""Prompt and pipeline version numbers recorded on every job.

Bump the matching constant whenever the prompt template or the processing
pipeline changes. Versions are stored for auditing only; nothing branches on
them when a job is read back.
"""

CURRENT_PROMPT_VERSION = 1
CURRENT_PIPELINE_VERSION = 1

PROMPT_VERSIONS = {
    1: {
        "description": "Technical VTO prompt with masking, warping and lighting directives",
        "created_at": "2025-01-15",
        "features": ["garment_masking", "physics_simulation", "lighting_matching", "style_presets"],
    },
}

PIPELINE_VERSIONS = {
    1: {
        "description": "Standard pipeline: resize -> jpeg -> provider call -> upload",
        "created_at": "2025-01-15",
        "features": ["image_resize_800", "jpeg_compression_80", "gemini_api"],
    },
}
