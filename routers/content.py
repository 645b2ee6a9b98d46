"""
Administrator content: affirmations, scheduled affirmations, quotes, media,
resources and weekly lectures.

Writes always require an administrator. The scheduled-affirmation and
resource lists are also readable with an end-user token, and paginate only
when both ``page`` and ``limit`` are given.
"""
from typing import Optional, Type

from fastapi import APIRouter, Depends, Query
from pymongo.database import Database

from auth import Principal, require_admin, require_admin_or_user
from database import create_document, get_db
from query import (AffirmationFilter, LectureFilter, MediaFilter, Page, QuoteFilter, ResourceFilter,
                   ScheduledAffirmationFilter, parse_flag, run_list)
from schemas import (Affirmation, AffirmationUpdate, DailyAffirmation, Document, MediaItem, MediaItemUpdate, Quote,
                     QuoteUpdate, Resource, ResourceUpdate, ScheduledAffirmationUpdate, WeeklyAffirmation,
                     WeeklyLecture, WeeklyLectureUpdate)
from routers.common import delete_or_404, find_or_404, next_order, ok, update_or_404

router = APIRouter(prefix="/api/admin", tags=["content"])


# -----------------------------
# Affirmations
# -----------------------------
@router.get("/affirmations")
def list_affirmations(search: Optional[str] = None, archived: Optional[str] = None,
                      page: Optional[int] = Query(None), limit: Optional[int] = Query(None),
                      admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    f = AffirmationFilter(search=search, archived=parse_flag(archived))
    result = run_list(db["affirmation"], f.compile(), f.sort, Page.with_default(page, limit))
    return result.envelope("items")


@router.post("/affirmations", status_code=201)
def create_affirmation(body: Affirmation, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return ok(item=create_document(db, "affirmation", body.to_document()))


@router.get("/affirmations/{item_id}")
def get_affirmation(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return ok(item=find_or_404(db["affirmation"], item_id, "Affirmation not found"))


@router.patch("/affirmations/{item_id}")
def update_affirmation(item_id: str, body: AffirmationUpdate, admin: dict = Depends(require_admin),
                       db: Database = Depends(get_db)):
    return ok(item=update_or_404(db["affirmation"], item_id, body.changes(), "Affirmation not found"))


@router.delete("/affirmations/{item_id}")
def delete_affirmation(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    delete_or_404(db["affirmation"], item_id, "Affirmation not found")
    return {"success": True, "message": "Affirmation deleted"}


# -----------------------------
# Daily / weekly affirmations
# -----------------------------
def scheduled_affirmation_routes(path: str, collection: str, create_model: Type[Document]) -> None:
    """Daily and weekly affirmations expose identical routes over their own collections."""

    def list_items(search: Optional[str] = None, active: Optional[str] = None, archived: Optional[str] = None,
                   page: Optional[int] = Query(None), limit: Optional[int] = Query(None),
                   principal: Principal = Depends(require_admin_or_user), db: Database = Depends(get_db)):
        f = ScheduledAffirmationFilter(search=search, active=parse_flag(active), archived=parse_flag(archived))
        return run_list(db[collection], f.compile(), f.sort, Page.optional(page, limit)).envelope("affirmations")

    def create_item(body: create_model, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
        return ok(affirmation=create_document(db, collection, body.to_document()))

    def get_item(item_id: str, principal: Principal = Depends(require_admin_or_user),
                 db: Database = Depends(get_db)):
        return ok(affirmation=find_or_404(db[collection], item_id, "Affirmation not found"))

    def update_item(item_id: str, body: ScheduledAffirmationUpdate, admin: dict = Depends(require_admin),
                    db: Database = Depends(get_db)):
        return ok(affirmation=update_or_404(db[collection], item_id, body.changes(), "Affirmation not found"))

    def delete_item(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
        delete_or_404(db[collection], item_id, "Affirmation not found")
        return {"success": True, "message": "Affirmation deleted"}

    router.add_api_route(path, list_items, methods=["GET"])
    router.add_api_route(path, create_item, methods=["POST"], status_code=201)
    router.add_api_route(path + "/{item_id}", get_item, methods=["GET"])
    router.add_api_route(path + "/{item_id}", update_item, methods=["PATCH"])
    router.add_api_route(path + "/{item_id}", delete_item, methods=["DELETE"])


scheduled_affirmation_routes("/daily-affirmations", "dailyaffirmation", DailyAffirmation)
scheduled_affirmation_routes("/weekly-affirmations", "weeklyaffirmation", WeeklyAffirmation)


# -----------------------------
# Quotes
# -----------------------------
@router.get("/quotes")
def list_quotes(search: Optional[str] = None, active: Optional[str] = None, author: Optional[str] = None,
                tag: Optional[str] = None, page: Optional[int] = Query(None), limit: Optional[int] = Query(None),
                admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    f = QuoteFilter(search=search, active=parse_flag(active), author=author, tag=tag)
    return run_list(db["quote"], f.compile(), f.sort, Page.with_default(page, limit)).envelope("items")


@router.post("/quotes", status_code=201)
def create_quote(body: Quote, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return ok(item=create_document(db, "quote", body.to_document()))


@router.get("/quotes/{item_id}")
def get_quote(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return ok(item=find_or_404(db["quote"], item_id, "Quote not found"))


@router.patch("/quotes/{item_id}")
def update_quote(item_id: str, body: QuoteUpdate, admin: dict = Depends(require_admin),
                 db: Database = Depends(get_db)):
    return ok(item=update_or_404(db["quote"], item_id, body.changes(), "Quote not found"))


@router.delete("/quotes/{item_id}")
def delete_quote(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    delete_or_404(db["quote"], item_id, "Quote not found")
    return {"success": True, "message": "Quote deleted"}


# -----------------------------
# Media library
# -----------------------------
@router.get("/media")
def list_media(search: Optional[str] = None, type: Optional[str] = None, tag: Optional[str] = None,
               page: Optional[int] = Query(None), limit: Optional[int] = Query(None),
               admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    f = MediaFilter(search=search, type=type, tag=tag)
    return run_list(db["mediaitem"], f.compile(), f.sort, Page.with_default(page, limit)).envelope("items")


@router.post("/media", status_code=201)
def create_media(body: MediaItem, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return ok(item=create_document(db, "mediaitem", body.to_document()))


@router.get("/media/{item_id}")
def get_media(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return ok(item=find_or_404(db["mediaitem"], item_id, "Media item not found"))


@router.patch("/media/{item_id}")
def update_media(item_id: str, body: MediaItemUpdate, admin: dict = Depends(require_admin),
                 db: Database = Depends(get_db)):
    return ok(item=update_or_404(db["mediaitem"], item_id, body.changes(), "Media item not found"))


@router.delete("/media/{item_id}")
def delete_media(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    delete_or_404(db["mediaitem"], item_id, "Media item not found")
    return {"success": True, "message": "Media item deleted"}


# -----------------------------
# Resources
# -----------------------------
@router.get("/resources")
def list_resources(search: Optional[str] = None, category: Optional[str] = None, active: Optional[str] = None,
                   archived: Optional[str] = None, page: Optional[int] = Query(None),
                   limit: Optional[int] = Query(None), principal: Principal = Depends(require_admin_or_user),
                   db: Database = Depends(get_db)):
    f = ResourceFilter(search=search, category=category, active=parse_flag(active), archived=parse_flag(archived))
    return run_list(db["resource"], f.compile(), f.sort, Page.optional(page, limit)).envelope("resources")


@router.post("/resources", status_code=201)
def create_resource(body: Resource, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    doc = body.to_document()
    if doc.get("order") is None:
        doc["order"] = next_order(db["resource"], {"category": doc["category"]})
    return ok(resource=create_document(db, "resource", doc))


@router.get("/resources/{item_id}")
def get_resource(item_id: str, principal: Principal = Depends(require_admin_or_user),
                 db: Database = Depends(get_db)):
    return ok(resource=find_or_404(db["resource"], item_id, "Resource not found"))


@router.patch("/resources/{item_id}")
def update_resource(item_id: str, body: ResourceUpdate, admin: dict = Depends(require_admin),
                    db: Database = Depends(get_db)):
    return ok(resource=update_or_404(db["resource"], item_id, body.changes(), "Resource not found"))


@router.delete("/resources/{item_id}")
def delete_resource(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    delete_or_404(db["resource"], item_id, "Resource not found")
    return {"success": True, "message": "Resource deleted"}


# -----------------------------
# Weekly lectures
# -----------------------------
@router.get("/weekly-lectures")
def list_lectures(search: Optional[str] = None, published: Optional[str] = None, archived: Optional[str] = None,
                  page: Optional[int] = Query(None), limit: Optional[int] = Query(None),
                  admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    f = LectureFilter(search=search, published=parse_flag(published), archived=parse_flag(archived))
    return run_list(db["weeklylecture"], f.compile(), f.sort, Page.with_default(page, limit)).envelope("items")


@router.post("/weekly-lectures", status_code=201)
def create_lecture(body: WeeklyLecture, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return ok(item=create_document(db, "weeklylecture", body.to_document()))


@router.get("/weekly-lectures/{item_id}")
def get_lecture(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    return ok(item=find_or_404(db["weeklylecture"], item_id, "Weekly lecture not found"))


@router.patch("/weekly-lectures/{item_id}")
def update_lecture(item_id: str, body: WeeklyLectureUpdate, admin: dict = Depends(require_admin),
                   db: Database = Depends(get_db)):
    return ok(item=update_or_404(db["weeklylecture"], item_id, body.changes(), "Weekly lecture not found"))


@router.delete("/weekly-lectures/{item_id}")
def delete_lecture(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
    delete_or_404(db["weeklylecture"], item_id, "Weekly lecture not found")
    return {"success": True, "message": "Weekly lecture deleted"}
