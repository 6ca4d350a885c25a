"""Thin wrapper over PaddleOCR. PaddleOCR answers with nested lists:
[ [[[x,y], [x,y], [x,y], [x,y]], ("text", confidence)], ... ].
This wrapper flattens them into TextHit records with window-relative boxes, so
the Linux backend can treat every recognized caption as a control."""

from dataclasses import dataclass

import numpy as np

MIN_CONFIDENCE = 0.8


@dataclass(frozen=True)
class TextHit:
    text: str
    center: tuple      # (x, y) relative to the captured window
    box: tuple         # (left, top, right, bottom) relative to the captured window
    confidence: float


class OCRWrapper:
    def __init__(self, lang='en'):
        from paddleocr import PaddleOCR
        # use_angle_cls=False: gateway dialogs never render rotated text
        self.engine = PaddleOCR(use_angle_cls=False, lang=lang, show_log=False)

    def analyze_ui(self, screenshot_np):
        """Returns every confident text line in the screenshot, top to bottom, left to right."""
        results = self.engine.ocr(screenshot_np, cls=False)
        # Handle cases where no text is detected
        if not results or results[0] is None:
            return []
        return parse_results(results[0])


def parse_results(lines, min_confidence=MIN_CONFIDENCE):
    """Converts raw PaddleOCR lines into TextHit records, dropping low-confidence noise."""
    hits = []
    for line in lines:
        coords = line[0]    # The 4 bounding box points
        text_info = line[1] # ("Text content", Confidence)

        text_str = text_info[0].strip()
        confidence = float(text_info[1])
        if not text_str or confidence < min_confidence:
            continue

        box = np.array(coords).astype(np.int32)
        left, top = int(box[:, 0].min()), int(box[:, 1].min())
        right, bottom = int(box[:, 0].max()), int(box[:, 1].max())
        center = (int(np.mean(box[:, 0])), int(np.mean(box[:, 1])))
        hits.append(TextHit(text_str, center, (left, top, right, bottom), confidence))

    hits.sort(key=lambda hit: (hit.box[1], hit.box[0]))
    return hits
