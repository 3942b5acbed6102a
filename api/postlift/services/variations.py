"""Rule-based content variation sets for caption, hashtag, tone and length experiments.

Every generated set is a valid variant list for ``ExperimentManager``:
unique ids and weights summing to 100.
"""

from __future__ import annotations

import enum
import re

from pydantic import BaseModel, Field

from postlift.core.exceptions import ValidationError
from postlift.schemas.experiment import Platform, Variant


class VariationType(str, enum.Enum):
    caption = "caption"
    hashtags = "hashtags"
    tone = "tone"
    length = "length"


class ContentDraft(BaseModel):
    caption: str
    hashtags: list[str] = Field(default_factory=list)
    platform: Platform


TRENDING_HASHTAGS: dict[Platform, list[str]] = {
    Platform.tiktok: ["#fyp", "#viral", "#trending", "#foryou", "#tiktok"],
    Platform.instagram: ["#instagood", "#photooftheday", "#love", "#beautiful", "#happy"],
    Platform.youtube: ["#youtube", "#subscribe", "#viral", "#trending", "#shorts"],
    Platform.facebook: ["#facebook", "#social", "#community", "#share", "#connect"],
    Platform.twitter: ["#twitter", "#trending", "#viral", "#news", "#social"],
    Platform.linkedin: ["#linkedin", "#professional", "#career", "#business", "#networking"],
}

SHORT_CAPTION_WORDS = 10
CALL_TO_ACTION = (
    " Check out more content like this and don't forget to follow for daily updates!"
    " What do you think about this? Let me know in the comments below! 👇"
)
_EMOJI = re.compile("😊|😍|🔥|✨")


# ---------------------------------------------------------------------------
# Caption transforms
# ---------------------------------------------------------------------------

def optimize_caption(caption: str, platform: Platform) -> str:
    if platform is Platform.tiktok:
        return caption + " 🔥 #fyp #viral"
    if platform is Platform.instagram:
        return caption + " ✨ #instagood #photooftheday"
    return caption + " 🚀"


def adjust_tone(caption: str, tone: str) -> str:
    if tone == "casual":
        return re.sub(r"!+", "", caption.lower()) + " 😊"
    if tone == "professional":
        return _EMOJI.sub("", re.sub(r"!+", ".", caption))
    if tone == "excited":
        return caption.replace(".", "!") + " 🔥🔥🔥"
    return caption


def shorten_caption(caption: str) -> str:
    words = caption.split(" ")
    short = " ".join(words[:SHORT_CAPTION_WORDS])
    return short + ("..." if len(words) > SHORT_CAPTION_WORDS else "")


def expand_caption(caption: str) -> str:
    return caption + CALL_TO_ACTION


# ---------------------------------------------------------------------------
# Variant sets
# ---------------------------------------------------------------------------

def generate_content_variations(
    base: ContentDraft, variation_type: VariationType | str
) -> list[Variant]:
    """Build the variant set for one kind of content experiment."""
    try:
        variation_type = VariationType(variation_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown variation type {variation_type!r}") from exc

    if variation_type is VariationType.caption:
        return [
            Variant(
                id="original",
                name="Original Caption",
                description="The original caption as provided",
                config={"caption": base.caption},
                weight=50,
            ),
            Variant(
                id="optimized",
                name="Optimized Caption",
                description="Caption optimized for engagement",
                config={"caption": optimize_caption(base.caption, base.platform)},
                weight=50,
            ),
        ]

    if variation_type is VariationType.hashtags:
        return [
            Variant(
                id="original_hashtags",
                name="Original Hashtags",
                description="The original hashtag set",
                config={"hashtags": list(base.hashtags)},
                weight=50,
            ),
            Variant(
                id="trending_hashtags",
                name="Trending Hashtags",
                description="Hashtags optimized for current trends",
                config={"hashtags": list(TRENDING_HASHTAGS[base.platform])},
                weight=50,
            ),
        ]

    if variation_type is VariationType.tone:
        return [
            Variant(
                id="casual_tone",
                name="Casual Tone",
                description="Casual, friendly tone",
                config={"caption": adjust_tone(base.caption, "casual")},
                weight=33,
            ),
            Variant(
                id="professional_tone",
                name="Professional Tone",
                description="Professional, authoritative tone",
                config={"caption": adjust_tone(base.caption, "professional")},
                weight=33,
            ),
            Variant(
                id="excited_tone",
                name="Excited Tone",
                description="Enthusiastic, energetic tone",
                config={"caption": adjust_tone(base.caption, "excited")},
                weight=34,
            ),
        ]

    return [
        Variant(
            id="short_caption",
            name="Short Caption",
            description="Concise, brief caption",
            config={"caption": shorten_caption(base.caption)},
            weight=50,
        ),
        Variant(
            id="long_caption",
            name="Detailed Caption",
            description="Extended, detailed caption",
            config={"caption": expand_caption(base.caption)},
            weight=50,
        ),
    ]
