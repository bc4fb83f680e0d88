"""Map reduce job handle attached to a query.

The job itself runs on the server. The client only forwards its definition
and optionally post-processes the raw results.

Usage:
    job = MapReduce(
        map_function="function () { emit(this.city, 1); }",
        reduce_function="function (key, values) { return Array.sum(values); }",
    )
    query.map_reduce = job
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class MapReduce:
    """Server-side aggregation job.

    Attaching one to a query changes its semantics: ``skip`` is ignored and
    single-result fetches are not allowed.

    Attributes:
        map_function: Source of the map stage.
        reduce_function: Source of the reduce stage.
        finalize_function: Optional finalize stage.
        context: Variables made available to the stages on the server.
        result_processor: Client-side callable applied to the raw results
            returned by ``find_all``.
    """

    map_function: str
    reduce_function: str
    finalize_function: str | None = None
    context: Mapping[str, Any] = field(default_factory=dict)
    result_processor: Callable[[Any], Any] | None = field(default=None, compare=False)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "map": self.map_function,
            "reduce": self.reduce_function,
        }
        if self.finalize_function is not None:
            wire["finalize"] = self.finalize_function
        if self.context:
            wire["context"] = dict(self.context)
        return wire
