"""Upload dropped, pasted or picked files and insert them where the gesture happened."""

import asyncio
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol, Set, Tuple
from loguru import logger

from medialink.config import UploadSettings
from medialink.document import MediaNode, UploadFile, UploadTask
from medialink.engine import DocumentEngine, EngineClosedError, EngineError, InsertNode, Transaction
from medialink.platforms.notifier import Notifier
from medialink.platforms.transport import UploadResponse

TYPE_LABELS = {
    'image/jpeg': 'JPEG',
    'image/png': 'PNG',
    'image/gif': 'GIF',
    'image/webp': 'WebP',
    'image/bmp': 'BMP',
}


class Transport(Protocol):
    """Stores a file and returns its public URL."""

    async def upload(self, file: UploadFile,
                     on_progress: Optional[Callable[[int, int], None]] = None) -> UploadResponse: ...


@dataclass
class BatchOutcome:
    """Result of handing a gesture's files to the pipeline."""
    handled: bool       # True: caller must suppress the default gesture handling
    tasks: List[UploadTask] = field(default_factory=list)
    rejected: List[UploadFile] = field(default_factory=list)


class UploadPipeline:
    """Upload each accepted file on its own and insert it at the captured position.

    The gesture position is copied into every task before any upload starts
    and reused verbatim when the upload resolves. Several files from one
    gesture therefore all land at that one position, in completion order.
    """

    def __init__(self, transport: Transport, notifier: Notifier, engine: DocumentEngine,
                 settings: UploadSettings = None, node_type: type = MediaNode):
        self.transport = transport
        self.notifier = notifier
        self.engine = engine
        self.settings = settings or UploadSettings()
        self.accepted_types = list(self.settings.accepted_types)
        self.node_type = node_type
        self._pending: Set[asyncio.Task] = set()
        logger.debug("UploadPipeline initialized: accepted_types={}", self.accepted_types)

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    def partition(self, files: List[UploadFile]) -> Tuple[List[UploadFile], List[UploadFile]]:
        """Split files into accepted and rejected by declared content type."""
        accepted = [f for f in files if f.content_type in self.accepted_types]
        rejected = [f for f in files if f.content_type not in self.accepted_types]
        return accepted, rejected

    def handle_batch(self, files: List[UploadFile], gesture_position: int,
                     gesture: str = "drop") -> BatchOutcome:
        """Start one upload per accepted file.

        Uploads need a running event loop. Without one the gesture is left
        unhandled before any notification goes out.
        """
        if not files:
            return BatchOutcome(handled=False)

        accepted, rejected = self.partition(files)
        loop = None
        if accepted:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.error("No running event loop, cannot upload {} files from {}", len(accepted), gesture)
                return BatchOutcome(handled=False, rejected=rejected)

        if rejected:
            logger.warning("Rejected {} of {} files on {}: {}", len(rejected), len(files), gesture,
                           [f"{f.name} ({f.content_type})" for f in rejected])
            self.notifier.warning(self._rejection_message(gesture, len(files)))
        if not accepted:
            return BatchOutcome(handled=False, rejected=rejected)

        tasks = []
        for file in accepted:
            task = UploadTask(file=file, target_position=gesture_position, node_type=self.node_type)
            tasks.append(task)
            job = loop.create_task(self._run(task))
            self._pending.add(job)
            job.add_done_callback(self._pending.discard)

        logger.info("Uploading {} files from {} at position {}", len(tasks), gesture, gesture_position)
        return BatchOutcome(handled=True, tasks=tasks, rejected=rejected)

    def handle_single(self, file: UploadFile, position: int) -> BatchOutcome:
        """File-picker upload of one file."""
        return self.handle_batch([file], position, gesture="select")

    async def drain(self):
        """Wait for every in-flight upload to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _run(self, task: UploadTask):
        name = task.file.name

        def on_progress(loaded: int, total: int):
            percent = round(loaded * 100 / (total or 1))
            logger.debug("Upload progress for {}: {}%", name, percent)

        try:
            response = await self.transport.upload(task.file, on_progress)
        except Exception as e:
            task.error = str(e) or type(e).__name__
            logger.error("Upload failed for {}: {}", name, task.error)
            self.notifier.error(f'Failed to upload image "{name}".')
            return

        task.file_url = response.file_url
        node = task.node_type(src=response.file_url)
        try:
            self.engine.dispatch(Transaction([InsertNode(task.target_position, node)]))
        except EngineClosedError as e:
            task.error = str(e)
            logger.warning("Editor gone, dropping {}: {}", name, e)
            return
        except EngineError as e:
            task.error = str(e)
            logger.error("Could not insert {} at {}: {}", name, task.target_position, e)
            self.notifier.error(f'Failed to insert image "{name}".')
            return

        logger.info("Inserted {} at {}: {}", name, task.target_position, response.file_url)
        self.notifier.success(f'Image "{name}" uploaded successfully!')

    def _rejection_message(self, gesture: str, count: int) -> str:
        labels = [TYPE_LABELS.get(t, t) for t in self.accepted_types]
        if len(labels) > 1:
            described = f"{', '.join(labels[:-1])}, or {labels[-1]}"
        else:
            described = ''.join(labels)
        noun = "a valid image file" if count == 1 else "only valid image files"
        return f"Please {gesture} {noun} ({described})."
