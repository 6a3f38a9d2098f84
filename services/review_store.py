# services/review_store.py
import json
import logging
from typing import List

from models import WrongAnswer
from services.schemas import WrongAnswerRecord

logger = logging.getLogger(__name__)


def _dump(value) -> str:
    return json.dumps(value, ensure_ascii=False)


def _load(raw):
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


def save(session, record: WrongAnswerRecord) -> WrongAnswer:
    row = WrongAnswer(
        question=record.question,
        user_answer=_dump(record.user_answer),
        correct_answer=_dump(record.correct_answer),
        topic=record.topic,
        explanation=record.explanation,
    )
    session.add(row)
    session.commit()
    logger.info("Saved wrong answer %s (topic=%r)", row.id, record.topic)
    return row


def _to_record(row: WrongAnswer) -> WrongAnswerRecord:
    return WrongAnswerRecord(
        question=row.question,
        user_answer=_load(row.user_answer),
        correct_answer=_load(row.correct_answer),
        topic=row.topic or "",
        explanation=row.explanation or "",
    )


def list_rows(session) -> List[WrongAnswer]:
    return session.query(WrongAnswer).order_by(WrongAnswer.created_at.asc(), WrongAnswer.id.asc()).all()


def list_records(session) -> List[WrongAnswerRecord]:
    return [_to_record(r) for r in list_rows(session)]


def row_to_dict(row: WrongAnswer) -> dict:
    d = _to_record(row).to_dict()
    d.update({
        "id": str(row.id),
        "timestamp": row.created_at.isoformat() if row.created_at else None,
        "reviewCount": row.review_count or 0,
    })
    return d
