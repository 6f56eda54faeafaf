"""Random image selection over the published directory index."""

import posixpath
import random
from typing import Annotated

import structlog
from fastapi import Depends

from nasimg.plugins.images.random_image.models import ImageDescriptor, RandomImage
from nasimg.utils.dependencies import get_index_state
from nasimg.utils.directory_index import IndexState
from nasimg.utils.exceptions import (
    DirectoryListFailedError,
    ImageReadFailedError,
    NoImagesInDirectoryError,
    NoIndexedDirectoriesError,
    RemoteFSError,
)
from nasimg.utils.image_types import content_type_of, is_image
from nasimg_core.tracing import get_tracer

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)


class RandomImageService:
    """Picks a random indexed directory, then a random image inside it."""

    def __init__(self, state: IndexState):
        self.state = state

    def get_random_image(self) -> RandomImage:
        """
        Select and read one random image.

        Both choices are uniform. The chosen directory is listed again at
        request time, since the remote tree may have changed after the index
        was built.

        Raises:
            NoIndexedDirectoriesError: If the index is empty. No remote I/O is done.
            DirectoryListFailedError: If the chosen directory cannot be listed.
            NoImagesInDirectoryError: If the chosen directory holds no image anymore.
            ImageReadFailedError: If the chosen image cannot be opened or read.
        """
        snapshot = self.state.get()
        if not snapshot.directories:
            raise NoIndexedDirectoriesError()

        with tracer.start_as_current_span("random_image.select") as span:
            directory = random.choice(snapshot.directories)
            span.set_attribute("image.directory", directory)

            try:
                entries = snapshot.accessor.list_directory(directory)
            except RemoteFSError as e:
                logger.warning(
                    "Failed to list selected directory", path=directory, error=str(e)
                )
                raise DirectoryListFailedError(f"Failed to read directory: {e}") from e

            images = [
                ImageDescriptor(
                    path=posixpath.join(directory, entry.name),
                    modified_at=entry.modified_at,
                )
                for entry in entries
                if not entry.is_dir and is_image(entry.name)
            ]
            if not images:
                logger.info("Indexed directory holds no images anymore", path=directory)
                raise NoImagesInDirectoryError()

            image = random.choice(images)
            span.set_attribute("image.path", image.path)

            try:
                with snapshot.accessor.open_for_read(image.path) as handle:
                    data = handle.read()
            except RemoteFSError as e:
                logger.warning("Failed to read image", path=image.path, error=str(e))
                raise ImageReadFailedError(f"Failed to read image file: {e}") from e

        logger.debug("Selected random image", path=image.path, size_bytes=len(data))
        return RandomImage(
            path=image.path,
            data=data,
            content_type=content_type_of(image.path),
            modified_at=image.modified_at,
        )


def get_random_image_service(
    state: Annotated[IndexState, Depends(get_index_state)],
) -> RandomImageService:
    """Dependency provider for the RandomImageService."""
    return RandomImageService(state)
