import asyncio

from orchestrator.collaborators import AnnotationStore, BaseRenderer
from utils.logger import get_logger, log_fields

logger = get_logger(__name__)


class AnnotationRestorer:
    """Re-materializes persisted annotations after a transcript reload."""

    def __init__(self, store: AnnotationStore, renderer: BaseRenderer, delay_s: float = 1.2):
        self.store = store
        self.renderer = renderer
        self.delay_s = delay_s

    async def restore(self) -> int:
        """
        Render every stored annotation the renderer does not already display.

        Returns:
            Number of annotations rendered
        """
        if self.delay_s > 0:
            await asyncio.sleep(self.delay_s)

        restored = 0
        for message in self.store.iter_messages():
            annotation = message.annotation or self.store.get_annotation(message.message_id)
            if annotation is None or self.renderer.has_rendered(message.message_id):
                continue
            try:
                await self.renderer.render_annotation(message.message_id, annotation)
            except Exception as e:
                logger.error(
                    f"Failed to restore annotation for message {message.message_id}: {e}",
                    extra=log_fields(message_id=message.message_id, url=annotation.url),
                )
                continue
            restored += 1

        logger.info(f"Restored {restored} annotation(s)", extra=log_fields(restored=restored))
        return restored
