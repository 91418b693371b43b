from __future__ import annotations

from typing import List

from .layout import ChannelLayout
from .postprocess import YoloDecoder
from .types import ClassifyResult


def decode_classify(output, num_classes: int) -> List[ClassifyResult]:
    """
    Arg-max per batch over a classify output shaped (batch, num_classes), e.g. 1x1000.

    The lowest class index wins an exact tie.
    """

    return YoloDecoder(ChannelLayout.classify(num_classes)).decode(output)


async def decode_classify_async(output, num_classes: int) -> List[ClassifyResult]:
    # No NMS step, so nothing to wait on.
    return await YoloDecoder(ChannelLayout.classify(num_classes)).decode_async(output)
