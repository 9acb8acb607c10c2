import io
import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, StreamingResponse
from starlette.middleware.sessions import SessionMiddleware
from starlette.templating import Jinja2Templates

from storefront.catalog import (
    add_image_url,
    attach_image_file,
    derive,
    filter_options,
    gallery_images,
    gallery_step,
    remove_image,
)
from storefront.db import engine
from storefront.errors import FormValidationError, PasscodeError
from storefront.links import format_number, maps_directions_link, vehicle_enquiry_text, whatsapp_link
from storefront.models import FilterSet, SortKey, VehicleDraft
from storefront.session import AdminSession
from storefront.settings import settings
from storefront.state import StorefrontState

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))
templates.env.globals.update(
    settings=settings,
    whatsapp_link=whatsapp_link,
    maps_directions_link=maps_directions_link,
    vehicle_enquiry_text=vehicle_enquiry_text,
)
templates.env.filters["number"] = format_number

router = APIRouter()


# -------- helpers: state/session/flash ----------
def get_state(request: Request) -> StorefrontState:
    return request.app.state.storefront


def get_admin(request: Request) -> AdminSession:
    return AdminSession(settings.ADMIN_PASSCODE, bool(request.session.get("admin")))


def admin_session_required(admin: AdminSession = Depends(get_admin)) -> AdminSession:
    if not admin.is_admin:
        raise HTTPException(status_code=401, detail="Admin mode required")
    return admin


def flash(request: Request, message: str, category: str = "success"):
    request.session.setdefault("flash", []).append({"cat": category, "msg": message})


def pop_flash(request: Request):
    msgs = request.session.get("flash", [])
    request.session["flash"] = []
    return msgs


def _refused(request: Request, target: str) -> RedirectResponse:
    flash(request, "Switch on admin mode first", "error")
    return RedirectResponse(target, status_code=303)


def get_filters(
    make: str = "",
    body: str = "",
    fuel: str = "",
    transmission: str = "",
    location: str = "",
    max_price: str = Query("", alias="maxPrice"),
    max_mileage: str = Query("", alias="maxMileage"),
    year_min: str = Query("", alias="yearMin"),
    year_max: str = Query("", alias="yearMax"),
) -> FilterSet:
    return FilterSet(
        make=make,
        body=body,
        fuel=fuel,
        transmission=transmission,
        location=location,
        max_price=max_price,
        max_mileage=max_mileage,
        year_min=year_min,
        year_max=year_max,
    )


def _dump(records):
    return [r.model_dump(mode="json", by_alias=True) for r in records]


def _inventory_page(
    request: Request,
    state: StorefrontState,
    admin: AdminSession,
    q: str = "",
    filters: Optional[FilterSet] = None,
    sort: str = SortKey.NEWEST.value,
    draft: Optional[VehicleDraft] = None,
    status_code: int = 200,
):
    filters = filters or FilterSet()
    full = state.inventory.items
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "title": "Inventory",
            "vehicles": derive(full, q, filters, sort),
            "total": len(full),
            "q": q,
            "filters": filters,
            "sort": SortKey.parse(sort).value,
            "sort_keys": [k.value for k in SortKey],
            "options": {f: filter_options(full, f) for f in FilterSet.CATEGORICAL},
            "is_admin": admin.is_admin,
            "logo": state.branding.logo,
            "draft": draft or VehicleDraft(location=settings.DEFAULT_LOCATION),
            "show_add": draft is not None,
            "flash": pop_flash(request),
        },
        status_code=status_code,
    )


# -------- inventory ----------
@router.get("/", response_class=HTMLResponse)
def inventory_page(
    request: Request,
    q: str = "",
    sort: str = SortKey.NEWEST.value,
    filters: FilterSet = Depends(get_filters),
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    return _inventory_page(request, state, admin, q, filters, sort)


@router.get("/api/inventory")
def list_inventory(
    q: str = "",
    sort: str = SortKey.NEWEST.value,
    filters: FilterSet = Depends(get_filters),
    state: StorefrontState = Depends(get_state),
):
    """Derived inventory list with the same parameters as the page."""
    return _dump(derive(state.inventory.items, q, filters, sort))


@router.get("/api/vehicles/{listing_id}")
def get_vehicle(listing_id: str, state: StorefrontState = Depends(get_state)):
    v = state.inventory.get(listing_id)
    if not v:
        raise HTTPException(status_code=404, detail="Not found")
    return v.model_dump(mode="json", by_alias=True)


@router.get("/vehicles/{listing_id}", response_class=HTMLResponse)
def vehicle_page(
    request: Request,
    listing_id: str,
    image: int = 0,
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    v = state.inventory.get(listing_id)
    if not v:
        raise HTTPException(status_code=404, detail="Not found")
    imgs = gallery_images(v, settings.PLACEHOLDER_IMAGE)
    current = gallery_step(image, 0, len(imgs))
    return templates.TemplateResponse(
        request,
        "vehicle.html",
        {
            "title": v.title,
            "vehicle": v,
            "image": imgs[current],
            "image_count": len(imgs),
            "prev_index": gallery_step(current, -1, len(imgs)),
            "next_index": gallery_step(current, 1, len(imgs)),
            "is_admin": admin.is_admin,
            "logo": state.branding.logo,
            "flash": pop_flash(request),
        },
    )


# -------- admin gate ----------
@router.post("/admin/toggle")
def admin_toggle(
    request: Request,
    passcode: Optional[str] = Form(None),
    next_url: str = Form("/", alias="next"),
    admin: AdminSession = Depends(get_admin),
):
    try:
        admin.toggle(lambda: passcode)
    except PasscodeError as e:
        flash(request, str(e), "error")
    request.session["admin"] = admin.is_admin
    if not next_url.startswith("/") or next_url.startswith("//"):
        next_url = "/"
    return RedirectResponse(next_url, status_code=303)


# -------- inventory admin ----------
@router.post("/admin/vehicles")
async def admin_vehicle_create(
    request: Request,
    title: str = Form(""),
    make: str = Form(""),
    model: str = Form(""),
    year: str = Form(""),
    price: str = Form(""),
    mileage: str = Form(""),
    body: str = Form(""),
    fuel: str = Form(""),
    transmission: str = Form(""),
    location: str = Form(""),
    color: str = Form(""),
    vin: str = Form(""),
    description: str = Form(""),
    image_urls: str = Form(""),
    kept_images: Optional[list[str]] = Form(None),
    remove_images: Optional[list[int]] = Form(None),
    images: Optional[list[UploadFile]] = File(None),
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    if not admin.is_admin:
        return _refused(request, "/")
    draft = VehicleDraft(
        title=title,
        make=make,
        model=model,
        year=year,
        price=price,
        mileage=mileage,
        body=body,
        fuel=fuel,
        transmission=transmission,
        location=location,
        color=color,
        vin=vin,
        description=description,
    )
    for url in kept_images or []:
        add_image_url(draft, url)
    for index in sorted(set(remove_images or []), reverse=True):
        remove_image(draft, index)
    for upload in images or []:
        if getattr(upload, "filename", ""):
            await attach_image_file(draft, upload)
    for url in image_urls.splitlines():
        add_image_url(draft, url)
    try:
        state.inventory.add(admin, draft)
    except FormValidationError as e:
        flash(request, str(e), "error")
        if any(img.startswith("data:") for img in draft.images):
            flash(request, "Uploaded image files were not kept, please choose them again.", "error")
            draft.images = [img for img in draft.images if not img.startswith("data:")]
        return _inventory_page(request, state, admin, draft=draft, status_code=400)
    flash(request, "Vehicle added", "success")
    return RedirectResponse("/", status_code=303)


@router.post("/admin/vehicles/{listing_id}/delete")
def admin_vehicle_delete(
    request: Request,
    listing_id: str,
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    if not state.inventory.delete(admin, listing_id):
        if not admin.is_admin:
            return _refused(request, "/")
        flash(request, "Vehicle not found", "error")
    else:
        flash(request, "Vehicle deleted", "success")
    return RedirectResponse("/", status_code=303)


@router.get("/admin/inventory/export")
def admin_inventory_export(
    state: StorefrontState = Depends(get_state),
    _=Depends(admin_session_required),
):
    data = state.inventory.export_json().encode("utf-8")
    return StreamingResponse(
        io.BytesIO(data),
        media_type="application/json",
        headers={"Content-Disposition": "attachment; filename=inventory.json"},
    )


@router.post("/admin/inventory/import")
async def admin_inventory_import(
    request: Request,
    file: UploadFile = File(...),
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(admin_session_required),
):
    content = await file.read()
    try:
        items = json.loads(content)
    except ValueError:
        flash(request, "Invalid JSON file", "error")
        return RedirectResponse("/", status_code=303)
    try:
        inserted, skipped = state.inventory.import_records(admin, items)
    except FormValidationError as e:
        flash(request, str(e), "error")
        return RedirectResponse("/", status_code=303)
    flash(request, f"Import done: {inserted} inserted, {skipped} skipped", "success")
    return RedirectResponse("/", status_code=303)


# -------- branding ----------
@router.post("/admin/branding/logo")
async def admin_logo_upload(
    request: Request,
    logo: UploadFile = File(...),
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    if not admin.is_admin:
        return _refused(request, "/")
    if await state.branding.upload_logo(admin, logo):
        flash(request, "Logo saved", "success")
    else:
        flash(request, "Could not save logo", "error")
    return RedirectResponse("/", status_code=303)


@router.post("/admin/branding/logo/clear")
def admin_logo_clear(
    request: Request,
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    if not state.branding.clear_logo(admin):
        return _refused(request, "/")
    flash(request, "Logo removed", "success")
    return RedirectResponse("/", status_code=303)


# -------- reviews ----------
def _reviews_page(request, state, admin, form=None, status_code=200):
    return templates.TemplateResponse(
        request,
        "reviews.html",
        {
            "title": "Reviews",
            "published": state.reviews.published(),
            "pending": state.reviews.pending() if admin.is_admin else [],
            "review_url": state.branding.review_url,
            "form": form or {"name": "", "rating": 5, "comment": ""},
            "is_admin": admin.is_admin,
            "logo": state.branding.logo,
            "flash": pop_flash(request),
        },
        status_code=status_code,
    )


@router.get("/reviews", response_class=HTMLResponse)
def reviews_page(
    request: Request,
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    return _reviews_page(request, state, admin)


@router.get("/api/reviews")
def list_reviews(
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    data = {"published": _dump(state.reviews.published())}
    if admin.is_admin:
        data["pending"] = _dump(state.reviews.pending())
    return data


@router.post("/reviews")
def submit_review(
    request: Request,
    name: str = Form(""),
    rating: str = Form("5"),
    comment: str = Form(""),
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    try:
        state.reviews.submit(name, comment, rating)
    except FormValidationError as e:
        flash(request, str(e), "error")
        form = {"name": name, "rating": rating, "comment": comment}
        return _reviews_page(request, state, admin, form=form, status_code=400)
    flash(request, "Thanks! Your review was submitted and is awaiting approval.", "success")
    return RedirectResponse("/reviews", status_code=303)


@router.post("/admin/reviews/link")
def admin_review_link(
    request: Request,
    url: str = Form(""),
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    if not state.branding.set_review_url(admin, url):
        if not admin.is_admin:
            return _refused(request, "/reviews")
        flash(request, "Could not save the review link", "error")
    else:
        flash(request, "Saved. Visitors will see a \"Leave a Google review\" button.", "success")
    return RedirectResponse("/reviews", status_code=303)


@router.post("/admin/reviews/{review_id}/{action}")
def admin_review_moderate(
    request: Request,
    review_id: str,
    action: str,
    response: str = Form(""),
    state: StorefrontState = Depends(get_state),
    admin: AdminSession = Depends(get_admin),
):
    if not admin.is_admin:
        return _refused(request, "/reviews")
    board = state.reviews
    if action == "approve":
        done = board.approve(admin, review_id)
    elif action == "unapprove":
        done = board.unapprove(admin, review_id)
    elif action == "delete":
        done = board.delete(admin, review_id)
    elif action == "response":
        draft = board.open_response(admin, review_id)
        done = draft is not None and board.commit_response(admin, draft.edit(response))
    else:
        raise HTTPException(status_code=404, detail="Unknown action")
    if not done:
        flash(request, "Review not found", "error")
    return RedirectResponse("/reviews", status_code=303)


def configure_logging(level: str = settings.LOG_LEVEL):
    logging.basicConfig(
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    # one state per app, built before the first request is served
    if app.state.storefront is None:
        app.state.storefront = StorefrontState(engine)
    yield


def create_app(state: Optional[StorefrontState] = None) -> FastAPI:
    """Build the storefront app; ``state`` defaults to the configured database."""
    configure_logging()
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    app.add_middleware(SessionMiddleware, secret_key=settings.SECRET_KEY)
    app.state.storefront = state
    app.include_router(router)
    return app


app = create_app()
