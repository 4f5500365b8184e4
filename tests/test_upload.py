"""
Tests for the concurrent upload pipeline.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from medialink.config import UploadSettings
from medialink.document import MediaNode, UploadFile
from medialink.engine import InsertText, Transaction
from medialink.platforms.inline_doc import InlineDocument
from medialink.upload import UploadPipeline

from conftest import FakeTransport


@pytest.fixture
def doc():
    return InlineDocument(html="<p>hello</p>")


@pytest.fixture
def pipeline(transport, notifier, doc):
    return UploadPipeline(transport, notifier, doc)


def _srcs(doc):
    return [(node.src, pos) for node, pos in doc.media_nodes()]


def test_files_land_at_gesture_position_in_completion_order(pipeline, transport, doc, png, tick):
    async def run():
        gate = asyncio.Event()
        transport.gates["a.png"] = gate
        outcome = pipeline.handle_batch([png("a.png"), png("b.png")], 2)

        await tick()
        assert _srcs(doc) == [("https://cdn.test/b.png", 2)]
        assert pipeline.in_flight == 1

        gate.set()
        await pipeline.drain()
        return outcome

    outcome = asyncio.run(run())

    assert outcome.handled
    assert [t.target_position for t in outcome.tasks] == [2, 2]
    assert _srcs(doc) == [("https://cdn.test/a.png", 2), ("https://cdn.test/b.png", 3)]
    assert pipeline.in_flight == 0


def test_position_is_not_remapped_over_later_edits(pipeline, transport, doc, png, tick):
    async def run():
        gate = asyncio.Event()
        transport.gates["a.png"] = gate
        pipeline.handle_batch([png("a.png")], 3)
        await tick()

        doc.dispatch(Transaction([InsertText(0, ">>")]))
        gate.set()
        await pipeline.drain()

    asyncio.run(run())

    assert _srcs(doc) == [("https://cdn.test/a.png", 3)]
    assert doc.text == ">>h\ufffcello"


def test_mixed_batch_warns_once_and_uploads_valid_files(pipeline, notifier, doc, png, txt):
    async def run():
        outcome = pipeline.handle_batch([png("a.png"), txt("x.txt"), txt("y.txt")], 0)
        await pipeline.drain()
        return outcome

    outcome = asyncio.run(run())

    assert outcome.handled
    assert [f.name for f in outcome.rejected] == ["x.txt", "y.txt"]
    assert notifier.of_level("warning") == ["Please drop only valid image files (JPEG, PNG, or GIF)."]
    assert notifier.of_level("success") == ['Image "a.png" uploaded successfully!']
    assert len(doc.media_nodes()) == 1


def test_all_rejected_falls_through_to_default_handling(pipeline, transport, notifier, txt):
    # No event loop is needed when nothing is uploaded
    outcome = pipeline.handle_batch([txt()], 0, gesture="paste")

    assert not outcome.handled
    assert outcome.tasks == []
    assert transport.calls == []
    assert notifier.messages == [("warning", "Please paste a valid image file (JPEG, PNG, or GIF).")]


def test_empty_batch_is_not_handled(pipeline, notifier):
    assert not pipeline.handle_batch([], 0).handled
    assert notifier.messages == []


def test_file_pick_uses_select_wording(pipeline, notifier, txt):
    outcome = pipeline.handle_single(txt(), 0)

    assert not outcome.handled
    assert notifier.of_level("warning") == ["Please select a valid image file (JPEG, PNG, or GIF)."]


def test_failed_upload_does_not_affect_siblings(notifier, doc, png):
    transport = FakeTransport(fail={"bad.png"})
    pipeline = UploadPipeline(transport, notifier, doc)

    async def run():
        outcome = pipeline.handle_batch([png("bad.png"), png("good.png")], 5)
        await pipeline.drain()
        return outcome

    bad, good = asyncio.run(run()).tasks

    assert bad.error == "storage unavailable"
    assert bad.file_url is None
    assert good.file_url == "https://cdn.test/good.png"
    assert good.done and bad.done
    assert _srcs(doc) == [("https://cdn.test/good.png", 5)]
    assert notifier.of_level("error") == ['Failed to upload image "bad.png".']
    assert notifier.of_level("success") == ['Image "good.png" uploaded successfully!']


def test_upload_resolving_after_teardown_is_a_no_op(pipeline, transport, notifier, doc, png, tick):
    async def run():
        gate = asyncio.Event()
        transport.gates["late.png"] = gate
        outcome = pipeline.handle_batch([png("late.png")], 0)
        await tick()

        doc.close()
        gate.set()
        await pipeline.drain()
        return outcome

    task, = asyncio.run(run()).tasks

    assert task.file_url == "https://cdn.test/late.png"
    assert task.error
    assert doc.media_nodes() == []
    assert notifier.messages == []


def test_progress_is_reported(pipeline, transport, png):
    async def run():
        pipeline.handle_batch([png("a.png")], 0)
        await pipeline.drain()

    asyncio.run(run())

    assert transport.progress == [("a.png", 0, png().size)]


def test_accepted_types_come_from_settings(transport, notifier, doc):
    settings = UploadSettings(accepted_types=["image/webp"])
    pipeline = UploadPipeline(transport, notifier, doc, settings)
    webp = UploadFile("pic.webp", "image/webp", b"RIFF")
    png = UploadFile("pic.png", "image/png", b"\x89PNG")

    accepted, rejected = pipeline.partition([webp, png])

    assert accepted == [webp]
    assert rejected == [png]
    assert pipeline._rejection_message("drop", 1) == "Please drop a valid image file (WebP)."


def test_inserted_node_is_bare_media_node(pipeline, doc, png):
    async def run():
        pipeline.handle_batch([png("a.png")], 0)
        await pipeline.drain()

    asyncio.run(run())

    assert doc.node_at(0) == MediaNode(src="https://cdn.test/a.png")


def test_batch_without_event_loop_is_left_unhandled(pipeline, transport, notifier, doc, png, txt):
    outcome = pipeline.handle_batch([png("a.png"), txt()], 0)

    assert not outcome.handled
    assert outcome.tasks == []
    assert transport.calls == []
    assert notifier.messages == []
    assert doc.media_nodes() == []


def test_insert_past_shrunken_document_reports_error(pipeline, transport, notifier, doc, png, tick):
    async def run():
        gate = asyncio.Event()
        transport.gates["a.png"] = gate
        outcome = pipeline.handle_batch([png("a.png")], 5)
        await tick()

        doc.set_content("<p>x</p>")
        gate.set()
        await pipeline.drain()
        return outcome

    task, = asyncio.run(run()).tasks

    assert "outside document" in task.error
    assert doc.media_nodes() == []
    assert notifier.messages == [("error", 'Failed to insert image "a.png".')]


@dataclass(frozen=True)
class Figure(MediaNode):
    pass


def test_tasks_build_the_configured_node_type(transport, notifier, doc, png):
    pipeline = UploadPipeline(transport, notifier, doc, node_type=Figure)

    async def run():
        outcome = pipeline.handle_batch([png("a.png")], 0)
        await pipeline.drain()
        return outcome

    task, = asyncio.run(run()).tasks

    assert task.node_type is Figure
    assert doc.node_at(0) == Figure(src="https://cdn.test/a.png")
