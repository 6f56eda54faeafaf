from fastapi import Request

from nasimg.utils.directory_index import IndexState


def get_index_state(request: Request) -> IndexState:
    """Dependency to get the shared directory index from the application state."""
    return request.app.state.index_state
