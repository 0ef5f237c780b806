"""Tests for name-based connection suggestions."""

from __future__ import annotations

import logging

from canvasflow.core.pipelines.builder import PipelineBuilder
from canvasflow.core.pipelines.matcher import (
    SuggestedConnection,
    apply_suggestions,
    build_suggested_pipeline,
    port_names_match,
    suggest_connections,
)

from .pipeline_helpers import counter_ids, make_widget


class TestPortNamesMatch:
    def test_exact(self):
        assert port_names_match("result", "result")

    def test_case_and_hyphens_are_ignored(self):
        assert port_names_match("Image-Data", "imagedata")

    def test_containment_either_way(self):
        assert port_names_match("image", "imageUrl")
        assert port_names_match("imageUrl", "image")

    def test_unrelated(self):
        assert not port_names_match("tick", "value")


class TestSuggestConnections:
    def test_single_direction_suggestion(self):
        x = make_widget("x", outputs=["result"])
        y = make_widget("y", inputs=["result"])

        suggestions = suggest_connections([x, y])

        assert suggestions == [
            SuggestedConnection(
                from_widget_id="x", from_output="result", to_widget_id="y", to_input="result"
            )
        ]

    def test_no_self_suggestions(self):
        w = make_widget("w", inputs=["value"], outputs=["value"])
        assert suggest_connections([w]) == []

    def test_types_are_ignored(self):
        x = make_widget("x", outputs=[{"id": "data", "type": "image"}])
        y = make_widget("y", inputs=[{"id": "data", "type": "number"}])

        assert len(suggest_connections([x, y])) == 1

    def test_widgets_without_manifest_get_no_default_ports(self):
        assert suggest_connections([make_widget("x"), make_widget("y")]) == []

    def test_legacy_manifest(self):
        x = make_widget("x")
        x = x.model_copy(update={"manifest": {"outputs": {"text": {"type": "string"}}}})
        y = make_widget("y", inputs=["textInput"])

        suggestions = suggest_connections([x, y])

        assert [(s.from_output, s.to_input) for s in suggestions] == [("text", "textInput")]

    def test_name_declared_in_both_shapes_suggested_once(self):
        x = make_widget("x").model_copy(
            update={"manifest": {"io": {"outputs": ["text"]}, "outputs": {"text": {}}}}
        )
        y = make_widget("y", inputs=["text"])

        assert len(suggest_connections([x, y])) == 1

    def test_wire_format_is_camel_case(self):
        x = make_widget("x", outputs=["out"])
        y = make_widget("y", inputs=["out"])

        data = suggest_connections([x, y])[0].to_json_dict()

        assert data == {
            "fromWidgetId": "x",
            "fromOutput": "out",
            "toWidgetId": "y",
            "toInput": "out",
        }


class TestApplySuggestions:
    def test_apply_wires_builder(self):
        x = make_widget("x", outputs=["result"])
        y = make_widget("y", inputs=["result"])
        builder = PipelineBuilder.create("p", "c")

        pipeline = apply_suggestions(builder, [x, y], suggest_connections([x, y])).build()

        assert len(pipeline.connections) == 1
        conn = pipeline.connections[0]
        assert conn.source.node_id == pipeline.node_for_widget("x").id
        assert conn.target.node_id == pipeline.node_for_widget("y").id

    def test_unknown_widget_is_skipped(self, caplog):
        caplog.set_level(logging.WARNING)
        x = make_widget("x", outputs=["result"])
        suggestion = SuggestedConnection(
            from_widget_id="x", from_output="result", to_widget_id="ghost", to_input="result"
        )

        pipeline = apply_suggestions(PipelineBuilder.create("p", "c"), [x], [suggestion]).build()

        assert pipeline.connections == []
        assert "unknown widget" in caplog.text

    def test_build_suggested_pipeline_includes_every_widget(self):
        x = make_widget("x", outputs=["result"])
        y = make_widget("y", inputs=["result"])
        z = make_widget("z")

        pipeline = build_suggested_pipeline("auto", "c", [x, y, z], id_factory=counter_ids())

        assert [n.widget_instance_id for n in pipeline.nodes] == ["x", "y", "z"]
        assert len(pipeline.connections) == 1
