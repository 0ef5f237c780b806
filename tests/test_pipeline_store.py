"""Tests for the in-memory pipeline gateway."""

import asyncio

from canvasflow.server.pipeline_store import InMemoryPipelineGateway

from .pipeline_helpers import make_pipeline


class TestInMemoryPipelineGateway:
    def test_save_bumps_version(self, gateway):
        asyncio.run(gateway.save_pipeline(make_pipeline()))
        stored = asyncio.run(gateway.get_pipeline("p-1"))
        asyncio.run(gateway.save_pipeline(stored))

        assert asyncio.run(gateway.get_pipeline("p-1")).version == 2

    def test_save_returns_stored_copy(self, gateway):
        result = asyncio.run(gateway.save_pipeline(make_pipeline()))

        assert result.success
        assert result.pipeline.version == 1
        result.pipeline.connections.clear()
        assert len(asyncio.run(gateway.get_pipeline("p-1")).connections) == 1

    def test_list_filters_by_canvas(self):
        gateway = InMemoryPipelineGateway(
            [make_pipeline(), make_pipeline(id="p-2", canvas_id="canvas-2")]
        )

        pipelines = asyncio.run(gateway.list_pipelines_for_canvas("canvas-2"))

        assert [p.id for p in pipelines] == ["p-2"]

    def test_returned_pipelines_are_copies(self):
        gateway = InMemoryPipelineGateway([make_pipeline()])

        [pipeline] = asyncio.run(gateway.list_pipelines_for_canvas("canvas-1"))
        pipeline.connections.clear()

        assert len(asyncio.run(gateway.get_pipeline("p-1")).connections) == 1

    def test_delete(self):
        gateway = InMemoryPipelineGateway([make_pipeline()])

        assert asyncio.run(gateway.delete_pipeline("p-1")).success
        result = asyncio.run(gateway.delete_pipeline("p-1"))
        assert not result.success
        assert result.error == "Pipeline p-1 not found"
