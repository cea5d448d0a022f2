import numpy as np

from core.contracts import ColorReading


ROI_FRACTION = 0.5
_PIXEL_FORMATS = {"bgr8", "rgb8"}


def center_region(img: np.ndarray, fraction: float = ROI_FRACTION) -> np.ndarray:
    """Return a view of the centered `fraction` x `fraction` region of `img`."""
    h, w = img.shape[:2]
    crop_h = max(1, int(round(h * fraction))) if h else 0
    crop_w = max(1, int(round(w * fraction))) if w else 0
    y0 = (h - crop_h) // 2
    x0 = (w - crop_w) // 2
    return img[y0 : y0 + crop_h, x0 : x0 + crop_w]


class FrameSampler:
    """Average colour of the central region of a frame, normalized to [0, 1]."""

    def __init__(self, pixel_format: str = "bgr8", roi_fraction: float = ROI_FRACTION):
        fmt = str(pixel_format or "bgr8").strip().lower()
        if fmt not in _PIXEL_FORMATS:
            raise ValueError(
                f"pixel_format must be one of {sorted(_PIXEL_FORMATS)}, got {fmt!r}"
            )
        if not (0 < roi_fraction <= 1.0):
            raise ValueError("roi_fraction must be in (0, 1]")
        self.pixel_format = fmt
        self.roi_fraction = float(roi_fraction)

    def sample(self, frame) -> ColorReading | None:
        if not isinstance(frame, np.ndarray) or frame.ndim != 3:
            return None
        if frame.shape[2] not in (3, 4):
            return None
        roi = center_region(frame, self.roi_fraction)
        if roi.size == 0:
            return None
        # Alpha (bgra) is ignored.
        means = roi[:, :, :3].reshape(-1, 3).mean(axis=0, dtype=np.float64)
        if np.issubdtype(frame.dtype, np.integer):
            means = means / float(np.iinfo(frame.dtype).max)
        if not np.all(np.isfinite(means)):
            return None
        if self.pixel_format == "bgr8":
            blue, green, red = (float(v) for v in means)
        else:
            red, green, blue = (float(v) for v in means)
        return ColorReading(
            red=red,
            green=green,
            blue=blue,
            brightness=(red + green + blue) / 3.0,
        )


__all__ = ["FrameSampler", "center_region", "ROI_FRACTION"]
