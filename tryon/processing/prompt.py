"""Instruction text sent to the generation backend.

The text is fully determined by the job's style and user instructions. Any
change to the template or the presets must bump CURRENT_PROMPT_VERSION.
"""

from typing import Optional

from tryon.jobs.models import TryOnStyle

STYLE_PRESETS = {
    TryOnStyle.EDITORIAL.value: (
        "Vogue Editorial: soft studio lighting, sharp focus, luxurious neutral "
        "backdrop, natural skin texture, high colour fidelity."
    ),
    TryOnStyle.SEDA.value: (
        "Silk/Satin Finish: emphasis on fabric sheen, fluid drape, soft realistic "
        "folds, specular lighting that brings out the material texture."
    ),
    TryOnStyle.JUSTA.value: (
        "Fitted/Bodycon: anatomical adherence to the body, shading that defines "
        "the silhouette, high definition of curves and muscle tone."
    ),
    TryOnStyle.TRANSPARENTE.value: (
        "Sheer and Lace: realistic skin preserved beneath the fabric, detailed "
        "lace texture, calibrated opacity, delicacy."
    ),
    TryOnStyle.CASUAL.value: (
        "Lifestyle Influencer: natural golden-hour daylight, vibrant colours, "
        "relaxed pose, blurred urban or home background (bokeh)."
    ),
    TryOnStyle.PASSARELA.value: (
        "High Fashion Runway: dramatic top-down lighting, high contrast, "
        "powerful attitude, intense focus on the garment."
    ),
}

DEFAULT_STYLE = TryOnStyle.EDITORIAL.value

_TEMPLATE = """\
ROLE: You are an expert AI Fashion Stylist, VFX Artist and Layer Compositor specializing in photorealistic Virtual Try-On.

INPUTS:
- IMAGE A (first image provided): the HUMAN MODEL (the base image to be edited).
- IMAGE B (second image provided): the CLOTHING PRODUCT (the garment to be transferred).

TASK:
VTO_MANDATORY: You MUST transfer the entire garment from IMAGE B onto the body of the model in IMAGE A. This is a mandatory substitution task.

STRICT REQUIREMENTS:
1. SUBSTITUTION & MASKING: Identify the area of the original clothing in IMAGE A and use it as the region to be completely OVERWRITTEN by the garment from IMAGE B. The original clothing must not be visible.
2. CLOTHING INTEGRATION: The garment from IMAGE B must be warped, resized and fitted onto the body in IMAGE A, conforming to the body shape with wrinkles, stretching and correct perspective.
3. PHYSICS & LIGHTING: The fabric must drape naturally, with realistic shadows and highlights that match the existing lighting and pose of IMAGE A.
4. PRESERVATION: Keep the exact face, hair, skin texture, pose and background of IMAGE A. Only the outfit changes.
5. STYLE: Apply the visual style: {style}
{instructions}
NEGATIVE CONSTRAINTS (WHAT TO AVOID):
- DO NOT show any part of the original clothing underneath the new garment.
- DO NOT simply paste IMAGE B as a flat texture or overlay.
- DO NOT distort the human face or limbs.
- DO NOT generate multiple items of clothing or change the background.

OUTPUT:
A single high-resolution photorealistic image of the transformation.
"""


def style_preset(style: Optional[str]) -> str:
    """Preset description for ``style``; unknown styles use the editorial preset."""
    return STYLE_PRESETS.get(style or "", STYLE_PRESETS[DEFAULT_STYLE])


def build_prompt(style: Optional[str], user_instructions: Optional[str] = None) -> str:
    instructions = ""
    if user_instructions and user_instructions.strip():
        instructions = f"6. CLIENT NOTES: {user_instructions.strip()}\n"
    return _TEMPLATE.format(style=style_preset(style), instructions=instructions)
