"""Tests for the connection builder state machine and helper constructors."""

from __future__ import annotations

import logging

import pytest

from canvasflow.core.pipelines import builder as b
from canvasflow.core.pipelines.builder import (
    NoPendingConnectionError,
    PipelineBuilder,
    WidgetPort,
    create_fan_in_pipeline,
    create_fan_out_pipeline,
    create_linear_pipeline,
)

from .pipeline_helpers import counter_ids, make_pipeline, make_widget

A = make_widget("w-a")
B = make_widget("w-b")
C = make_widget("w-c")
D = make_widget("w-d")


class TestBuilderChain:
    def test_connect_to_build(self):
        pipeline = (
            PipelineBuilder.create("p", "c").connect(A, "out1").to(B, "in1").build()
        )

        assert len(pipeline.nodes) == 2
        assert len(pipeline.connections) == 1
        node_a = pipeline.node_for_widget("w-a")
        node_b = pipeline.node_for_widget("w-b")
        conn = pipeline.connections[0]
        assert conn.source.node_id == node_a.id
        assert conn.source.port_name == "out1"
        assert conn.target.node_id == node_b.id
        assert conn.target.port_name == "in1"
        assert pipeline.name == "p"
        assert pipeline.canvas_id == "c"

    def test_to_without_connect_raises(self):
        with pytest.raises(NoPendingConnectionError, match="No pending connection"):
            PipelineBuilder.create("p", "c").to(B, "in1")

    def test_to_after_completed_edge_raises(self):
        builder = PipelineBuilder.create("p", "c").connect(A, "out").to(B, "in")
        with pytest.raises(NoPendingConnectionError):
            builder.to(C, "in")

    def test_second_connect_overwrites_pending_source(self):
        pipeline = (
            PipelineBuilder.create("p", "c")
            .connect(A, "out")
            .connect(C, "other")
            .to(B, "in")
            .build()
        )

        assert len(pipeline.connections) == 1
        conn = pipeline.connections[0]
        assert conn.source.node_id == pipeline.node_for_widget("w-c").id
        assert conn.source.port_name == "other"
        # A's node was still registered by the first connect()
        assert pipeline.node_for_widget("w-a") is not None

    def test_build_discards_pending_edge_with_warning(self, caplog):
        caplog.set_level(logging.WARNING)
        builder = PipelineBuilder.create("p", "c").connect(A, "out")

        pipeline = builder.build()

        assert pipeline.connections == []
        assert "Discarding incomplete connection" in caplog.text

    def test_build_returns_snapshot(self):
        builder = PipelineBuilder.create("p", "c").connect(A, "out").to(B, "in")
        first = builder.build()
        builder.connect(B, "out").to(C, "in")

        assert len(first.connections) == 1
        assert len(builder.build().connections) == 2

    def test_duplicate_edge_is_ignored(self):
        builder = PipelineBuilder.create("p", "c").connect(A, "out").to(B, "in")
        builder.connect(A, "out").to(B, "in")

        pipeline = builder.build()
        assert len(pipeline.connections) == 1
        assert not builder.is_pending

    def test_self_connection_is_not_rejected_by_builder(self):
        pipeline = PipelineBuilder.create("p", "c").connect(A, "out").to(A, "in").build()
        assert len(pipeline.nodes) == 1
        assert len(pipeline.connections) == 1


class TestBuilderHelpers:
    def test_metadata_setters_chain(self):
        pipeline = (
            PipelineBuilder.create("p", "c")
            .name("renamed")
            .description("desc")
            .enabled(False)
            .build()
        )
        assert pipeline.name == "renamed"
        assert pipeline.description == "desc"
        assert pipeline.enabled is False

    def test_add_widget_uses_label(self):
        pipeline = PipelineBuilder.create("p", "c").add_widget(A, "Timer").build()
        assert pipeline.nodes[0].label == "Timer"
        assert pipeline.nodes[0].widget_instance_id == "w-a"

    def test_disconnect_removes_exact_tuple(self):
        builder = (
            PipelineBuilder.create("p", "c")
            .connect(A, "out")
            .to(B, "in")
            .connect(A, "out")
            .to(B, "other")
        )
        pipeline = builder.disconnect(A, "out", B, "in").build()

        assert [c.target.port_name for c in pipeline.connections] == ["other"]

    def test_disconnect_ignores_enabled_flag(self):
        builder = PipelineBuilder.from_pipeline(
            make_pipeline(
                connections=[
                    make_pipeline().connections[0].model_copy(update={"enabled": False})
                ]
            )
        )
        pipeline = builder.disconnect(A, "out", B, "in").build()
        assert pipeline.connections == []

    def test_disconnect_unknown_widget_is_noop(self):
        builder = PipelineBuilder.create("p", "c").connect(A, "out").to(B, "in")
        pipeline = builder.disconnect(A, "out", D, "in").build()
        assert len(pipeline.connections) == 1

    def test_clear_connections_keeps_nodes(self):
        pipeline = (
            PipelineBuilder.create("p", "c")
            .connect(A, "out")
            .to(B, "in")
            .clear_connections()
            .build()
        )
        assert pipeline.connections == []
        assert len(pipeline.nodes) == 2

    def test_from_pipeline_reuses_existing_nodes(self):
        pipeline = (
            PipelineBuilder.from_pipeline(make_pipeline())
            .connect(B, "out")
            .to(A, "in")
            .build()
        )
        assert [n.id for n in pipeline.nodes] == ["n-a", "n-b"]
        assert pipeline.connections[-1].key == ("n-b", "out", "n-a", "in")

    def test_injected_id_factory(self):
        pipeline = (
            PipelineBuilder.create("p", "c", id_factory=counter_ids())
            .connect(A, "out")
            .to(B, "in")
            .build()
        )
        assert pipeline.id == "id-1"
        assert [n.id for n in pipeline.nodes] == ["id-2", "id-3"]
        assert pipeline.connections[0].id == "id-4"


class TestTransitions:
    def test_transitions_do_not_mutate_previous_state(self):
        idle = b.initial_state("p", "c")
        pending = b.connect(idle, A, "out")
        done = b.complete(pending, B, "in")

        assert idle.pending is None
        assert idle.pipeline.nodes == []
        assert pending.is_pending
        assert pending.pipeline.connections == []
        assert done.pending is None
        assert len(done.pipeline.connections) == 1

    def test_ensure_node_returns_same_node(self):
        state, first = b.ensure_node(b.initial_state("p", "c"), A)
        state, second = b.ensure_node(state, A)
        assert first is second
        assert len(state.pipeline.nodes) == 1

    def test_pending_records_source(self):
        state = b.connect(b.initial_state("p", "c"), A, "out")
        assert state.pending.widget_id == "w-a"
        assert state.pending.port == "out"
        assert state.pending.node_id == state.node_map["w-a"].id


class TestConstructors:
    def test_fan_out(self):
        pipeline = create_fan_out_pipeline(
            "p",
            "c",
            WidgetPort(A, "out"),
            [WidgetPort(B, "in"), WidgetPort(C, "in"), WidgetPort(D, "in")],
        )

        assert len(pipeline.connections) == 3
        assert len({c.source.node_id for c in pipeline.connections}) == 1
        assert {c.source.port_name for c in pipeline.connections} == {"out"}
        assert len({c.target.node_id for c in pipeline.connections}) == 3

    def test_fan_in(self):
        pipeline = create_fan_in_pipeline(
            "p", "c", [WidgetPort(A, "out"), WidgetPort(B, "out")], WidgetPort(C, "in")
        )
        assert len(pipeline.connections) == 2
        assert len({c.target.node_id for c in pipeline.connections}) == 1

    def test_linear_chain(self):
        pipeline = create_linear_pipeline("p", "c", [A, B, C])
        node_ids = [pipeline.node_for_widget(w).id for w in ("w-a", "w-b", "w-c")]

        assert [c.key for c in pipeline.connections] == [
            (node_ids[0], "output", node_ids[1], "input"),
            (node_ids[1], "output", node_ids[2], "input"),
        ]

    def test_linear_single_widget_has_no_connections(self):
        pipeline = create_linear_pipeline("p", "c", [A])
        assert len(pipeline.nodes) == 1
        assert pipeline.connections == []
