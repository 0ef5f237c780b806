"""Heuristic port matching for freshly generated widgets.

Suggestions are based on port *names* only: two names match when, after
lowercasing and stripping hyphens, one equals or contains the other. Port
types are ignored and no threshold or ranking is applied, so false positives
are expected; suggestions are meant for human review, not automatic wiring.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from .builder import PipelineBuilder
from .ids import IdFactory, new_id
from .manifest import port_names
from .schema import CamelModel, Pipeline, WidgetRef

logger = logging.getLogger(__name__)


class SuggestedConnection(CamelModel):
    """A proposed edge between two widgets (not yet part of any pipeline)."""

    from_widget_id: str
    from_output: str
    to_widget_id: str
    to_input: str


def normalize_port_name(name: str) -> str:
    return name.lower().replace("-", "")


def port_names_match(output_name: str, input_name: str) -> bool:
    """True if the normalized names are equal or one contains the other."""
    out = normalize_port_name(output_name)
    inp = normalize_port_name(input_name)
    return out == inp or inp in out or out in inp


def suggest_connections(widgets: Sequence[WidgetRef]) -> list[SuggestedConnection]:
    """Propose edges between every ordered pair of distinct widgets.

    Every matching (output of i, input of j) pair yields one suggestion.
    Opposite directions are independent: j -> i is only suggested when j
    declares a matching output and i a matching input. Port names are
    deduplicated per direction first, so a name declared in both the io and
    legacy shapes yields one suggestion, not two.
    """
    ports = [port_names(w.manifest) for w in widgets]
    suggestions: list[SuggestedConnection] = []

    for i, source in enumerate(widgets):
        for j, target in enumerate(widgets):
            if i == j:
                continue
            for output in ports[i].names("output"):
                for input_ in ports[j].names("input"):
                    if port_names_match(output, input_):
                        suggestions.append(
                            SuggestedConnection(
                                from_widget_id=source.id,
                                from_output=output,
                                to_widget_id=target.id,
                                to_input=input_,
                            )
                        )

    logger.debug(f"Suggested {len(suggestions)} connections for {len(widgets)} widgets")
    return suggestions


def apply_suggestions(
    builder: PipelineBuilder,
    widgets: Sequence[WidgetRef],
    suggestions: Sequence[SuggestedConnection],
) -> PipelineBuilder:
    """Wire accepted suggestions into *builder*."""
    by_id = {w.id: w for w in widgets}
    for suggestion in suggestions:
        source = by_id.get(suggestion.from_widget_id)
        target = by_id.get(suggestion.to_widget_id)
        if source is None or target is None:
            logger.warning(
                f"Skipping suggestion for unknown widget: "
                f"{suggestion.from_widget_id} -> {suggestion.to_widget_id}"
            )
            continue
        builder.connect(source, suggestion.from_output).to(target, suggestion.to_input)
    return builder


def build_suggested_pipeline(
    name: str,
    canvas_id: str,
    widgets: Sequence[WidgetRef],
    *,
    id_factory: IdFactory = new_id,
) -> Pipeline:
    """Pipeline containing every widget and every suggested connection."""
    builder = PipelineBuilder.create(name, canvas_id, id_factory=id_factory)
    for widget in widgets:
        builder.add_widget(widget)
    apply_suggestions(builder, widgets, suggest_connections(widgets))
    return builder.build()
