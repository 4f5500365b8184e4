"""Editor session: routes user gestures to the upload pipeline, resolver and input rules."""

import re
from typing import List, Optional
from loguru import logger

from medialink.attachment import AttachmentResolver, AttachResult, AttachState
from medialink.config import Config, SchemaSettings, UploadSettings, UrlPolicySettings
from medialink.document import Selection, UploadFile
from medialink.engine import AddLinkMark, EngineError, InsertText, ReplaceWithNode, Transaction
from medialink.media_node import MediaNodeSchema
from medialink.platforms.inline_doc import OBJECT_REPLACEMENT, InlineDocument
from medialink.platforms.notifier import ConsoleNotifier, Notifier
from medialink.upload import BatchOutcome, Transport, UploadPipeline
from medialink.url_policy import UrlPolicy

# Bare URL candidates for auto-linking: scheme URLs, www. hosts, dotted hosts
AUTOLINK_PATTERN = re.compile(
    r'^(?:https?://\S+|www\.\S+|[\w-]+(?:\.[\w-]+)*\.[a-z]{2,}(?:[/?#]\S*)?)$', re.IGNORECASE)


class Editor:
    """One editing session over a document engine."""

    def __init__(self, transport: Transport = None, notifier: Notifier = None,
                 engine: InlineDocument = None,
                 schema_settings: SchemaSettings = None,
                 policy_settings: UrlPolicySettings = None,
                 upload_settings: UploadSettings = None,
                 autolink: bool = True):
        self.schema = MediaNodeSchema(schema_settings)
        self.engine = engine or InlineDocument(self.schema)
        self.policy = UrlPolicy(policy_settings)
        self.resolver = AttachmentResolver(self.policy)
        self.notifier = notifier or ConsoleNotifier()
        self.pipeline = UploadPipeline(transport, self.notifier, self.engine, upload_settings) if transport else None
        self.autolink = autolink
        logger.debug("Editor initialized: uploads={}, autolink={}", bool(self.pipeline), autolink)

    @classmethod
    def from_config(cls, config: Config, transport: Transport = None, notifier: Notifier = None) -> "Editor":
        """Build an editor with every component configured from the config file."""
        return cls(
            transport=transport,
            notifier=notifier,
            schema_settings=config.get_schema_settings(),
            policy_settings=config.get_url_policy_settings(),
            upload_settings=config.get_upload_settings()
        )

    # -- Content ------------------------------------------------------------

    def set_content(self, html: str):
        self.engine.set_content(html)

    def get_html(self) -> str:
        return self.engine.get_html()

    def select(self, start: int, end: Optional[int] = None):
        self.engine.set_selection(Selection(start, start if end is None else end))

    def destroy(self):
        """Tear down the engine; uploads still in flight resolve to no-ops."""
        self.engine.close()
        logger.info("Editor destroyed with {} uploads in flight",
                    self.pipeline.in_flight if self.pipeline else 0)

    # -- Gestures -----------------------------------------------------------

    def handle_drop(self, files: List[UploadFile]) -> bool:
        """Returns True when the drop was taken over and default handling must be suppressed."""
        return self.upload_files(files, "drop").handled

    def handle_paste(self, files: List[UploadFile]) -> bool:
        return self.upload_files(files, "paste").handled

    def handle_file_pick(self, file: UploadFile) -> BatchOutcome:
        if not file:
            return BatchOutcome(handled=False)
        return self.upload_files([file], "select")

    def upload_files(self, files: List[UploadFile], gesture: str = "drop") -> BatchOutcome:
        """Upload files at the selection start, reporting every task."""
        if self.pipeline is None:
            logger.warning("No upload transport configured, ignoring {} of {} files", gesture, len(files))
            return BatchOutcome(handled=False)
        position = self.engine.selection.start
        return self.pipeline.handle_batch(files, position, gesture)

    async def wait_for_uploads(self):
        if self.pipeline:
            await self.pipeline.drain()

    # -- Commands -----------------------------------------------------------

    def insert_image(self, **attrs) -> bool:
        """Insert a media node at the selection. ``src`` is not validated here."""
        return self._dispatch(self.schema.create_insertion_command(attrs, self.engine.selection))

    def begin_attach(self) -> AttachState:
        return self.resolver.begin_attach(self.engine)

    def commit_attach(self, url: str) -> AttachResult:
        result = self.resolver.commit_attach(self.engine, url)
        return self._apply(result)

    def detach(self) -> AttachResult:
        return self._apply(self.resolver.detach(self.engine))

    def _apply(self, result: AttachResult) -> AttachResult:
        if result.ok and result.transaction and not self._dispatch(result.transaction):
            result.error = "The document could not be updated"
        return result

    def _dispatch(self, transaction: Transaction) -> bool:
        try:
            self.engine.dispatch(transaction)
            return True
        except EngineError as e:
            logger.error("Transaction rejected by document engine: {}", e)
            return False

    # -- Typing and input rules ---------------------------------------------

    def type_text(self, text: str):
        """Type text at the cursor one character at a time, running input rules."""
        for char in text:
            pos = self.engine.selection.end
            if not self._dispatch(Transaction([InsertText(pos, char)], Selection.cursor(pos + 1))):
                return
            if not self._apply_shorthand(pos + 1) and char.isspace() and self.autolink:
                self._apply_autolink(pos)

    def _apply_shorthand(self, cursor: int) -> bool:
        """Replace a just-completed ``![alt](src "title")`` with a media node."""
        text = self.engine.text_before(cursor)
        match = self.schema.match_shorthand(text)
        if not match:
            return False

        start = cursor - len(text) + match.start
        node = self.schema.create_node(match.attrs)
        return self._dispatch(Transaction([ReplaceWithNode(start, cursor, node)], Selection.cursor(start + 1)))

    def _apply_autolink(self, word_end: int) -> bool:
        """Link the bare URL that ends right before ``word_end``."""
        text = self.engine.text_before(word_end)
        word = re.split(r'\s', text)[-1]
        if not word or OBJECT_REPLACEMENT in word or not AUTOLINK_PATTERN.match(word):
            return False

        start = word_end - len(word)
        if self.engine.active_link(Selection(start, word_end)):
            return False
        if not self.policy.should_auto_link(word):
            logger.debug("Auto-link suppressed for {}", word)
            return False
        href = self.policy.validate_destination(word)
        if not href:
            return False

        logger.debug("Auto-linking {} -> {}", word, href)
        return self._dispatch(Transaction([AddLinkMark(start, word_end, href)]))
