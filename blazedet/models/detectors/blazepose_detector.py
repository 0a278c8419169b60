"""BlazePose person detector.

The detector owns the anchor layout for one model configuration and turns the
two raw output tensors of the model (classification logits and box/keypoint
regressions) into a list of non-overlapping :class:`Detection` results. Model
execution happens elsewhere; :meth:`BlazePoseDetector.predict` only decodes.

Each call allocates its own working buffers, so a single detector instance
can serve concurrent ``predict`` calls. Once :meth:`BlazePoseDetector.dispose`
has been called the instance rejects further use.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from jaxtyping import Array, Float
from ml_collections import ConfigDict

from blazedet.models.task_modules.post_processors.pose_decoder import decode_poses
from blazedet.models.utils.anchor_generator import (
    DEFAULT_MAX_SCALE,
    DEFAULT_MIN_SCALE,
    DEFAULT_STRIDES,
    AnchorGenerator,
)
from blazedet.models.utils.geometry import CoordinateMapper, Point, Rect
from blazedet.models.utils.nms import suppress

logger = logging.getLogger(__name__)

_CONFIG_KEYS = frozenset({"input_size", "min_score", "max_iou", "anchors"})
_ANCHOR_CONFIG_KEYS = frozenset({"strides", "min_scale", "max_scale", "base_aspect"})


class DetectorDisposedError(RuntimeError):
    """Raised when a disposed detector is used."""


@dataclass(frozen=True)
class Detection:
    """Detected person region.

    Attributes:
        rect: Region of interest in the caller's coordinate space.
        score: Detection confidence in ``(0, 1)``.
        points: Four auxiliary keypoints used to align the region.
    """

    rect: Rect
    score: float
    points: tuple[Point, ...]

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serialisable representation."""
        return {
            "rect": dict(self.rect._asdict()),
            "score": self.score,
            "points": [dict(point._asdict()) for point in self.points],
        }


class BlazePoseDetector:
    """Decode BlazePose detector outputs into aligned person regions.

    Args:
        input_size: Model input ``(width, height)`` in pixels.
        min_score: Minimum candidate detection score.
        max_iou: Maximum intersection-over-union score for overlap removal.
        strides: Stride of each detector output layer.
        min_scale: Anchor scale of the first layer.
        max_scale: Anchor scale of the last layer.
        base_aspect: Anchor aspect ratio.
    """

    TAG = "@natml/blazepose-detector"

    def __init__(
        self,
        input_size: Sequence[int] = (224, 224),
        *,
        min_score: float = 0.4,
        max_iou: float = 0.3,
        strides: Sequence[int] = DEFAULT_STRIDES,
        min_scale: float = DEFAULT_MIN_SCALE,
        max_scale: float = DEFAULT_MAX_SCALE,
        base_aspect: float = 1.0,
    ) -> None:
        if len(input_size) != 2:
            raise ValueError(f"input_size must contain (width, height); received {input_size}.")
        if not 0.0 <= max_iou <= 1.0:
            raise ValueError(f"max_iou must lie in [0, 1]; received {max_iou}.")
        if not 0.0 <= min_score <= 1.0:
            raise ValueError(f"min_score must lie in [0, 1]; received {min_score}.")
        self._input_size = (int(input_size[0]), int(input_size[1]))
        self._min_score = float(min_score)
        self._max_iou = float(max_iou)
        self._anchor_generator = AnchorGenerator(
            strides=strides,
            min_scale=min_scale,
            max_scale=max_scale,
            base_aspect=base_aspect,
        )
        self._anchors: Float[Array, "num_anchors 2"] | None = self._anchor_generator.generate(*self._input_size)
        logger.info(
            "Created %s detector with %d anchors for %dx%d input",
            self.TAG,
            self._anchors.shape[0],
            *self._input_size,
        )

    @classmethod
    def from_config(cls, config: ConfigDict | Mapping[str, Any]) -> BlazePoseDetector:
        """Create a detector from a configuration such as :func:`blazedet.configs.get_config`."""
        unknown = set(config.keys()) - _CONFIG_KEYS
        if unknown:
            raise ValueError(f"Unknown detector config keys: {sorted(unknown)}.")
        anchors = dict(config.get("anchors", {}))
        unknown_anchor = set(anchors) - _ANCHOR_CONFIG_KEYS
        if unknown_anchor:
            raise ValueError(f"Unknown anchor config keys: {sorted(unknown_anchor)}.")
        kwargs: dict[str, Any] = {key: config[key] for key in ("min_score", "max_iou") if key in config}
        kwargs.update(anchors)
        return cls(tuple(config.get("input_size", (224, 224))), **kwargs)

    @property
    def input_size(self) -> tuple[int, int]:
        return self._input_size

    @property
    def min_score(self) -> float:
        return self._min_score

    @property
    def max_iou(self) -> float:
        return self._max_iou

    @property
    def disposed(self) -> bool:
        return self._anchors is None

    @property
    def anchors(self) -> Float[Array, "num_anchors 2"]:
        """Anchor centers, one per output tensor row."""
        return self._require_anchors()

    @property
    def num_anchors(self) -> int:
        return int(self._require_anchors().shape[0])

    def predict(
        self,
        scores: Any,
        regressions: Any,
        coordinate_mapper: CoordinateMapper | None = None,
    ) -> list[Detection]:
        """Detect poses from raw model outputs.

        Args:
            scores: Classification logits shaped ``[1, N, 1]``.
            regressions: Box and keypoint regressions shaped ``[1, N, 12]``.
            coordinate_mapper: Optional mapper moving detections into the
                caller's coordinate space.

        Returns:
            Detections in descending score order.

        Raises:
            DetectorDisposedError: If the detector has been disposed.
            ValueError: If the tensors do not match the anchor layout.
        """
        anchors = self._require_anchors()
        candidates = decode_poses(
            scores,
            regressions,
            anchors,
            min_score=self._min_score,
            input_size=self._input_size,
            coordinate_mapper=coordinate_mapper,
        )
        keep = suppress(candidates, self._max_iou, pad_to=self.num_anchors)
        return [Detection(rect=candidates[idx].box, score=candidates[idx].score, points=candidates[idx].points) for idx in keep]

    def dispose(self) -> None:
        """Release the anchor buffer. Further calls to :meth:`predict` fail."""
        if self._anchors is None:
            return
        self._anchors = None
        logger.info("Disposed %s detector", self.TAG)

    def __enter__(self) -> BlazePoseDetector:
        self._require_anchors()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def _require_anchors(self) -> Float[Array, "num_anchors 2"]:
        if self._anchors is None:
            raise DetectorDisposedError(f"{self.TAG} detector has been disposed.")
        return self._anchors

    def __repr__(self) -> str:
        state = "disposed" if self.disposed else f"{self._anchors.shape[0]} anchors"
        return f"BlazePoseDetector(input_size={self._input_size}, min_score={self._min_score}, max_iou={self._max_iou}, {state})"


__all__ = ["BlazePoseDetector", "Detection", "DetectorDisposedError"]
