"""Constant metrics and the Prometheus text exposition format."""

from __future__ import annotations

import enum
import math
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal


class ValueType(enum.Enum):
    """Kind of a metric sample."""

    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class Desc:
    """Name, help text and label names shared by a family of metrics."""

    name: str
    help: str
    label_names: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "label_names", tuple(self.label_names))

    def metric(self, value_type: ValueType, value: float, *args: str) -> Metric:
        """Return a metric of this family with the given label values."""
        if len(args) != len(self.label_names):
            raise ValueError(
                f"{self.name}: expected {len(self.label_names)} label values, got {len(args)}"
            )
        return Metric(self, ValueType(value_type), float(value), tuple(args))


@dataclass(frozen=True)
class Metric:
    """A single sample with fixed value and label values."""

    desc: Desc
    value_type: ValueType
    value: float
    label_values: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.desc.name

    @property
    def labels(self) -> dict[str, str]:
        return dict(zip(self.desc.label_names, self.label_values))


def format_value(value: float) -> str:
    """Format a sample value the way the text exposition format writes it."""
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "+Inf" if value > 0 else "-Inf"
    sign = "-" if math.copysign(1.0, value) < 0 else ""
    if value == 0:
        return sign + "0"

    _, digit_tuple, exponent = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(map(str, digit_tuple))
    point = len(digits) + exponent
    exp = point - 1
    if exp < -4 or exp >= 6:
        mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
        return f"{sign}{mantissa}e{'-' if exp < 0 else '+'}{abs(exp):02d}"
    if point <= 0:
        body = "0." + "0" * (-point) + digits
    elif point >= len(digits):
        body = digits + "0" * (point - len(digits))
    else:
        body = digits[:point] + "." + digits[point:]
    return sign + body


def _escape_help(text: str) -> str:
    return text.replace("\\", "\\\\").replace("\n", "\\n")


def _escape_label(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _label_key(metric: Metric) -> tuple[tuple[str, str], ...]:
    return tuple(sorted(metric.labels.items()))


def render_text(metrics: Iterable[Metric]) -> str:
    """Render metrics as Prometheus text, families and samples sorted.

    Raises ValueError for inconsistent families or duplicate samples.
    """
    families: dict[str, list[Metric]] = {}
    for metric in metrics:
        family = families.setdefault(metric.name, [])
        if family:
            first = family[0]
            if (
                first.desc.help != metric.desc.help
                or first.value_type is not metric.value_type
                or sorted(first.desc.label_names) != sorted(metric.desc.label_names)
            ):
                raise ValueError(f"inconsistent descriptions for metric {metric.name}")
        family.append(metric)

    lines = []
    for name in sorted(families):
        family = families[name]
        first = family[0]
        lines.append(f"# HELP {name} {_escape_help(first.desc.help)}")
        lines.append(f"# TYPE {name} {first.value_type.value}")
        seen = set()
        for key, metric in sorted(((_label_key(m), m) for m in family), key=lambda p: p[0]):
            if key in seen:
                raise ValueError(f"metric {name} collected twice with labels {dict(key)}")
            seen.add(key)
            labels = ""
            if key:
                labels = "{" + ",".join(f'{k}="{_escape_label(v)}"' for k, v in key) + "}"
            lines.append(f"{name}{labels} {format_value(metric.value)}")
    return "".join(line + "\n" for line in lines)