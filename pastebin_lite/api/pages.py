from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, render_template

from pastebin_lite.api.dependencies import build_paste_service
from pastebin_lite.domain.errors import (
    InvalidPasteParameters,
    PasteNotFoundError,
    StorageUnavailableError,
)


pages_bp = Blueprint("pages", __name__)


@pages_bp.route("/p/<paste_id>", methods=["GET"])
def show_paste(paste_id: str) -> tuple[str, int]:
    """
    Render a paste as HTML without consuming a view.

    Content is untrusted; the template relies on Jinja2 autoescaping.
    """
    paste_service = build_paste_service()
    try:
        dto = paste_service.display_paste(paste_id)
    except PasteNotFoundError:
        return (
            render_template("error.html", title="404", message="This paste does not exist."),
            HTTPStatus.NOT_FOUND,
        )
    except InvalidPasteParameters as exc:
        return (
            render_template("error.html", title="400", message=str(exc)),
            HTTPStatus.BAD_REQUEST,
        )
    except StorageUnavailableError:
        return (
            render_template("error.html", title="503", message="Storage unavailable."),
            HTTPStatus.SERVICE_UNAVAILABLE,
        )

    return render_template("paste.html", paste=dto), HTTPStatus.OK
