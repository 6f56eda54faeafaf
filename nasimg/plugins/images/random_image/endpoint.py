from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response

from .models import ErrorResponse
from .service import RandomImageService, get_random_image_service

router = APIRouter()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


@router.get(
    "/getRandomImage",
    response_class=Response,
    summary="Get a random image",
    description=(
        "Pick a random directory known to hold images, then a random image in it, "
        "and return its raw bytes."
    ),
    responses={
        200: {"content": {"image/*": {}}, "description": "Raw image bytes"},
        404: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
)
def get_random_image(
    request: Request,
    service: Annotated[RandomImageService, Depends(get_random_image_service)],
):
    """
    Return one random image.

    - `Content-Type` is derived from the file extension.
    - `X-Creation-Date` carries the file's modification time (RFC 3339).
    - Errors are handled by the global exception handler.
    """
    image = service.get_random_image()
    request.state.image_path = image.path
    headers = {**CORS_HEADERS, "X-Creation-Date": image.creation_date_header}
    return Response(content=image.data, media_type=image.content_type, headers=headers)


@router.options("/getRandomImage", include_in_schema=False)
def get_random_image_preflight():
    """CORS preflight for the random image endpoint."""
    return Response(status_code=200, headers=CORS_HEADERS)
