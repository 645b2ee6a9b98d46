from typing import Optional, Type

from fastapi import APIRouter, Depends
from pymongo.database import Database

from auth import require_admin
from database import create_document, get_db, utcnow
from query import QuestionFilter, parse_flag, run_list
from schemas import (DailyCheckinQuestion, DailyCheckinQuestionUpdate, Document, OnboardingQuestion,
                     OnboardingQuestionUpdate, Reorder)
from routers.common import delete_or_404, find_or_404, next_order, object_id, ok, update_or_404

router = APIRouter(prefix="/api/admin", tags=["questions"])


def question_routes(path: str, collection: str, create_model: Type[Document], update_model: Type[Document]) -> None:
    def list_questions(search: Optional[str] = None, active: Optional[str] = None, type: Optional[str] = None,
                       admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
        f = QuestionFilter(search=search, active=parse_flag(active), type=type)
        return run_list(db[collection], f.compile(), f.sort, None).envelope("questions")

    def create_question(body: create_model, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
        doc = body.to_document()
        if doc.get("order") is None:
            doc["order"] = next_order(db[collection])
        return ok(question=create_document(db, collection, doc))

    def reorder_questions(body: Reorder, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
        ids = [object_id(q) for q in body.order]
        now = utcnow()
        # one independent update per question; concurrent reorders can interleave
        for index, oid in enumerate(ids):
            db[collection].update_one({"_id": oid}, {"$set": {"order": index + 1, "updatedAt": now}})
        f = QuestionFilter()
        questions = run_list(db[collection], f.compile(), f.sort, None).envelope("questions")
        return {**questions, "message": "Questions reordered"}

    def get_question(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
        return ok(question=find_or_404(db[collection], item_id, "Question not found"))

    def update_question(item_id: str, body: update_model, admin: dict = Depends(require_admin),
                        db: Database = Depends(get_db)):
        return ok(question=update_or_404(db[collection], item_id, body.changes(), "Question not found"))

    def delete_question(item_id: str, admin: dict = Depends(require_admin), db: Database = Depends(get_db)):
        delete_or_404(db[collection], item_id, "Question not found")
        return {"success": True, "message": "Question deleted"}

    router.add_api_route(path, list_questions, methods=["GET"])
    router.add_api_route(path, create_question, methods=["POST"], status_code=201)
    router.add_api_route(path + "/reorder", reorder_questions, methods=["POST"])
    router.add_api_route(path + "/{item_id}", get_question, methods=["GET"])
    router.add_api_route(path + "/{item_id}", update_question, methods=["PATCH"])
    router.add_api_route(path + "/{item_id}", delete_question, methods=["DELETE"])


question_routes("/onboarding-questions", "onboardingquestion", OnboardingQuestion, OnboardingQuestionUpdate)
question_routes("/daily-checkin-questions", "dailycheckinquestion", DailyCheckinQuestion, DailyCheckinQuestionUpdate)
