"""Pixel checks for the parts of a Swing dialog that OCR cannot read: where the
empty input boxes are, whether the box left of a caption is ticked, and
whether a caption is greyed out."""

import cv2
import numpy as np


class VisualVerifier:
    def __init__(self, mark_threshold=0.12, dim_threshold=110):
        self.mark_threshold = mark_threshold
        self.dim_threshold = dim_threshold

    def find_input_boxes(self, screenshot_np, min_width=60, min_height=14, max_height=40):
        """
        Locates text-field outlines: wide, short rectangles with a hollow center.
        Returns (left, top, right, bottom) boxes sorted top to bottom, left to right.
        """
        gray = cv2.cvtColor(screenshot_np, cv2.COLOR_BGR2GRAY)
        edged = cv2.Canny(gray, 50, 150)
        contours, _ = cv2.findContours(edged, cv2.RETR_LIST, cv2.CHAIN_APPROX_SIMPLE)

        boxes = []
        for contour in contours:
            x, y, w, h = cv2.boundingRect(contour)
            if w < min_width or not min_height <= h <= max_height or w < 3 * h:
                continue
            # Hollow check: the inside of an input box has almost no edges
            inner = edged[y + 3:y + h - 3, x + 3:x + w - 3]
            if inner.size and np.count_nonzero(inner) / inner.size > 0.05:
                continue
            box = (x, y, x + w, y + h)
            if not any(_overlaps(box, other) for other in boxes):
                boxes.append(box)

        return sorted(boxes, key=lambda b: (b[1], b[0]))

    def is_marked(self, screenshot_np, text_box, size=16, gap=4):
        """
        Whether the check box / radio button drawn left of a caption is ticked:
        a ticked box has a dark center, an empty one only a dark outline.
        """
        left, top, _, bottom = text_box
        middle = (top + bottom) // 2
        x1, x2 = max(0, left - gap - size), max(0, left - gap)
        y1, y2 = max(0, middle - size // 2), middle + size // 2
        patch = screenshot_np[y1:y2, x1:x2]
        if patch.size == 0:
            return False

        gray = cv2.cvtColor(patch, cv2.COLOR_BGR2GRAY)
        h, w = gray.shape
        center = gray[h // 4:h - h // 4, w // 4:w - w // 4]
        if center.size == 0:
            return False
        dark_ratio = np.count_nonzero(center < 100) / center.size
        return dark_ratio > self.mark_threshold

    def is_dimmed(self, screenshot_np, text_box):
        """Disabled Swing captions are rendered in light grey instead of black."""
        left, top, right, bottom = text_box
        patch = screenshot_np[top:bottom, left:right]
        if patch.size == 0:
            return False
        gray = cv2.cvtColor(patch, cv2.COLOR_BGR2GRAY)
        # the darkest pixels belong to the glyphs
        ink = np.percentile(gray, 5)
        return ink > self.dim_threshold


def _overlaps(a, b):
    return not (a[2] <= b[0] or b[2] <= a[0] or a[3] <= b[1] or b[3] <= a[1])
