"""Parser for the text exposition format served by ``/metrics``.

Only the scalar subset is understood::

    # HELP http_requests_total Total requests
    # TYPE http_requests_total counter
    http_requests_total{method="GET"} 42

Each data line becomes one MetricSample keyed by its bare metric name; a later
line for the same name replaces the earlier one. Malformed lines are skipped
and malformed label segments dropped. Parsing never raises.
"""

from __future__ import annotations

import logging
import math
import re
from enum import Enum

from libs.telemetry.models import ExpositionTable, MetricSample, MetricType

logger = logging.getLogger(__name__)

METRIC_NAME_RE = re.compile(r"^[a-zA-Z_:][a-zA-Z0-9_:]*$")
LABEL_NAME_RE = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

HELP_PREFIX = "# HELP "
TYPE_PREFIX = "# TYPE "

_TYPES_BY_NAME = {t.value: t for t in MetricType}


class _LineState(Enum):
    EXPECT_LINE = "expect_line"
    IN_HELP = "in_help"
    IN_TYPE = "in_type"
    IN_SAMPLE = "in_sample"


def _classify(line: str) -> _LineState:
    if line.startswith(HELP_PREFIX):
        return _LineState.IN_HELP
    if line.startswith(TYPE_PREFIX):
        return _LineState.IN_TYPE
    if line and not line.startswith("#"):
        return _LineState.IN_SAMPLE
    # Blank lines and free-form comments
    return _LineState.EXPECT_LINE


def parse_float(text: str) -> float | None:
    """Parse a sample value; ``+Inf``, ``-Inf`` and ``NaN`` are accepted."""
    # float() tolerates digit separators, the format does not
    if "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_labels(block: str) -> dict[str, str]:
    """Parse the inside of a ``{...}`` label block.

    Segments are split on commas and then on the first ``=``. Surrounding
    double quotes are removed from values, including a one-sided quote
    left by a comma inside a quoted value. Segments without ``=``, with an
    invalid label name or with an empty raw value are omitted.
    """
    labels: dict[str, str] = {}
    for segment in block.split(","):
        key, sep, raw_value = segment.partition("=")
        key = key.strip()
        raw_value = raw_value.strip()
        if not sep or not raw_value or not LABEL_NAME_RE.match(key):
            continue
        raw_value = raw_value.strip('"')
        labels[key] = raw_value
    return labels


class ExpositionParser:
    """Line-oriented state machine over exposition text.

    States: EXPECT_LINE (between lines), IN_HELP, IN_TYPE and IN_SAMPLE (one
    per line kind). Each line moves the machine out of EXPECT_LINE into the
    state matching its kind and back once handled. The per-name HELP and TYPE
    declarations seen so far are the only state carried between lines.

    Example:
        >>> table = ExpositionParser().parse(text)
        >>> table["http_requests_total"].labels
        {'method': 'GET'}
    """

    def parse(self, text: str) -> ExpositionTable:
        helps: dict[str, str] = {}
        types: dict[str, MetricType] = {}
        table: ExpositionTable = {}
        skipped = 0

        state = _LineState.EXPECT_LINE
        for raw_line in text.splitlines():
            line = raw_line.strip()
            state = _classify(line)

            if state is _LineState.IN_HELP:
                self._handle_help(line, helps)
            elif state is _LineState.IN_TYPE:
                if not self._handle_type(line, types):
                    skipped += 1
            elif state is _LineState.IN_SAMPLE:
                sample = self._handle_sample(line, helps, types)
                if sample is None:
                    skipped += 1
                else:
                    table[sample.name] = sample

            state = _LineState.EXPECT_LINE

        if skipped:
            logger.debug("Skipped %d malformed exposition line(s)", skipped)
        return table

    def _handle_help(self, line: str, helps: dict[str, str]) -> None:
        name, _, help_text = line[len(HELP_PREFIX) :].strip().partition(" ")
        if METRIC_NAME_RE.match(name):
            helps[name] = help_text.strip()

    def _handle_type(self, line: str, types: dict[str, MetricType]) -> bool:
        parts = line[len(TYPE_PREFIX) :].split()
        if len(parts) != 2 or not METRIC_NAME_RE.match(parts[0]):
            return False
        metric_type = _TYPES_BY_NAME.get(parts[1].lower())
        if metric_type is None:
            return False
        types[parts[0]] = metric_type
        return True

    def _handle_sample(
        self,
        line: str,
        helps: dict[str, str],
        types: dict[str, MetricType],
    ) -> MetricSample | None:
        metric_part, sep, value_text = line.rpartition(" ")
        metric_part = metric_part.strip()
        if not sep or not metric_part:
            return None

        value = parse_float(value_text)
        if value is None:
            return None

        labels: dict[str, str] = {}
        brace = metric_part.find("{")
        if brace == -1:
            name = metric_part
        else:
            if not metric_part.endswith("}"):
                return None
            name = metric_part[:brace].strip()
            labels = parse_labels(metric_part[brace + 1 : -1])

        if not METRIC_NAME_RE.match(name):
            return None

        return MetricSample(
            name=name,
            help=helps.get(name, ""),
            type=types.get(name, MetricType.GAUGE),
            value=value,
            labels=labels,
        )


def parse_exposition(text: str) -> ExpositionTable:
    """Parse exposition text into a table keyed by bare metric name."""
    return ExpositionParser().parse(text)


def sample_value(table: ExpositionTable, name: str) -> float | None:
    """Value of ``name`` in ``table``, treating a missing or NaN sample as None."""
    sample = table.get(name)
    if sample is None or math.isnan(sample.value):
        return None
    return sample.value
