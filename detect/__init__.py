from .red_light import TriggerDetector, classify_reading, validate_detector_config
from .sampler import FrameSampler, center_region

__all__ = [
    "FrameSampler",
    "TriggerDetector",
    "center_region",
    "classify_reading",
    "validate_detector_config",
]
