"""Extract plot records from synced submission payloads."""

from __future__ import annotations

from loguru import logger

from plotguard.config import ExtractionConfig
from plotguard.core.entities import UNKNOWN_PLOT_NAME, Plot, Submission
from plotguard.errors import GeometryError
from plotguard.utils.geometry_codec import parse_polygon
from plotguard.utils.payload import SubmissionPayload


class PlotExtractor:
    """Map a submission's raw payload to a non-draft :class:`Plot`.

    Extraction only parses geometry; shape quality (self-intersection, area)
    is checked earlier on the draft path, so topologically invalid outlines
    are still extracted here.
    """

    def __init__(self, config: ExtractionConfig | None = None) -> None:
        self.config = config or ExtractionConfig()

    def extract(self, submission: Submission) -> Plot | None:
        """Build a plot from ``submission`` or return ``None``.

        ``None`` means nothing usable was found: payload is not an object,
        no polygon field carries a value, or the polygon does not parse.
        """
        try:
            return self._extract(submission)
        except Exception as e:
            logger.warning(f"Plot extraction failed for submission {submission.id}: {e}")
            return None

    def _extract(self, submission: Submission) -> Plot | None:
        payload = submission.raw_payload
        if not isinstance(payload, SubmissionPayload):
            logger.debug(f"Submission {submission.id}: payload is not an object")
            return None

        polygon_text = self._first_polygon_value(payload)
        if polygon_text is None:
            logger.debug(f"Submission {submission.id}: no polygon field present")
            return None

        try:
            polygon = parse_polygon(polygon_text)
        except GeometryError as e:
            logger.debug(f"Submission {submission.id}: polygon rejected ({e.reason})")
            return None

        instance_name = submission.instance_name
        if instance_name is None or not instance_name.strip():
            instance_name = submission.id

        return Plot(
            polygon=polygon,
            instance_name=instance_name,
            form_id=submission.form_id,
            display_name=self.build_display_name(payload),
            region=payload.get_string(self.config.region_field),
            sub_region=payload.get_string(self.config.sub_region_field),
            submission_id=submission.id,
        )

    def _first_polygon_value(self, payload: SubmissionPayload) -> str | None:
        for field_name in self.config.polygon_fields:
            value = payload.get_string_or_none(field_name)
            if value is not None:
                return value
        return None

    def build_display_name(self, payload: SubmissionPayload) -> str:
        """Join non-blank name components with single spaces."""
        parts = [
            payload.get_string(field_name)
            for field_name in self.config.plot_name_fields
        ]
        name = " ".join(part for part in parts if part)
        return name or UNKNOWN_PLOT_NAME
