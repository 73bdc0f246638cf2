import logging

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import RedirectResponse

from common.core.config import settings
from common.core.errors import DisabledError, ExpiredError, ShortenerError
from common.db.stores import get_link_cache, get_link_store
from redirect_service.error_pages import render_error_page
from redirect_service.services.redirect_service import RedirectService

logger = logging.getLogger(__name__)

redirect_router = APIRouter()


def get_redirect_service(store=Depends(get_link_store), cache=Depends(get_link_cache)) -> RedirectService:
    return RedirectService(store, cache, timeout_seconds=settings.redirect_timeout_seconds)


@redirect_router.get("/{slug}", include_in_schema=False)
async def handle_redirect(
    slug: str,
    background_tasks: BackgroundTasks,
    service: RedirectService = Depends(get_redirect_service),
):
    """
    Redirects a short link to its destination with UTM parameters applied.
    """
    try:
        redirect = await service.resolve(slug)
    except ExpiredError as e:
        return render_error_page(410, e.message, title="Link Expired")
    except DisabledError as e:
        return render_error_page(410, e.message, title="Link Disabled")
    except ShortenerError as e:
        if e.status_code >= 500:
            logger.error(f"Error resolving {slug}: {e.message}")
            return render_error_page(500, "An unexpected error occurred while processing your request.")
        return render_error_page(e.status_code, e.message)
    except Exception as e:
        logger.error(f"Error during redirect for {slug}: {e!r}")
        return render_error_page(500, "An unexpected error occurred while processing your request.")

    background_tasks.add_task(service.record_click, slug)
    return RedirectResponse(url=redirect.location, status_code=302)
