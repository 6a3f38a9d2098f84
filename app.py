import os
import sys
import logging

from flask import Flask, request, jsonify
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session
from sqlalchemy.pool import StaticPool
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from config import Settings, RUNTIME_DIR
from models import Base
from ai_providers.errors import ProviderError
from ai_providers.gemini_provider import GeminiProvider
from ai_providers.local_stub import LocalStub
from ai_providers.openrouter_provider import OpenRouterProvider
from ai_providers.pool import ProviderPool
from services.analysis import AnalysisOrchestrator
from services.generator import StructuredGenerator
from services.ingestion import FileIngestionCoordinator, PollPolicy
from services.quizzer import QuizPipeline
from services.schemas import WrongAnswerRecord
import services.review_store as review_store

logger = logging.getLogger(__name__)


def build_pool(settings: Settings) -> ProviderPool:
    if settings.use_local_stub:
        logger.warning("USE_LOCAL_STUB=1 -> using the offline LocalStub provider")
        return ProviderPool([LocalStub()])

    pool = ProviderPool.from_credentials(
        settings.gemini_api_keys,
        lambda key, i: GeminiProvider(key, name=f"gemini-{i + 1}", model=settings.topic_model,
                                      http_timeout=settings.http_timeout),
    )
    if not len(pool):
        logger.error("No GEMINI_API_KEY_* configured: upload, quiz and fallback analysis will fail")
    return pool


def build_chat_provider(settings: Settings):
    if not settings.openrouter_api_key:
        logger.info("OPENROUTER_API_KEY not set: weak area analysis uses the primary provider only")
        return None
    return OpenRouterProvider(settings.openrouter_api_key, model=settings.openrouter_model,
                              url=settings.openrouter_url, timeout=settings.http_timeout)


def _engine(url: str):
    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(url, future=True, connect_args={"check_same_thread": False},
                             poolclass=StaticPool)
    if url.startswith("sqlite:///"):
        os.makedirs(RUNTIME_DIR, exist_ok=True)
    return create_engine(url, future=True)


def _bad_request(message: str):
    return jsonify({"success": False, "error": message, "errorCode": "BAD_REQUEST",
                    "retryable": False}), 400


def create_app(settings: Settings = None, pool: ProviderPool = None, chat_provider=None,
               coordinator: FileIngestionCoordinator = None) -> Flask:
    settings = settings or Settings.from_env()
    pool = pool if pool is not None else build_pool(settings)
    if chat_provider is None:
        chat_provider = build_chat_provider(settings)

    coordinator = coordinator or FileIngestionCoordinator(PollPolicy(
        interval=settings.poll_interval,
        max_transport_retries=settings.poll_transport_retries,
        timeout=settings.ingest_timeout,
    ))
    generator = StructuredGenerator(
        topic_params={"model": settings.topic_model},
        quiz_params={"model": settings.quiz_model},
    )
    pipeline = QuizPipeline(pool, coordinator, generator, budget=settings.pipeline_budget)
    analyzer = AnalysisOrchestrator.build(
        pool, chat_provider,
        tier_one_params={"model": settings.openrouter_model, "temperature": 0.7, "max_tokens": 2000},
        tier_two_params={"model": settings.analysis_model, "temperature": 0.7},
    )

    app = Flask(__name__)
    app.secret_key = settings.secret_key
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024

    engine = _engine(settings.database_url)
    Session = scoped_session(sessionmaker(bind=engine))
    Base.metadata.create_all(engine)

    app.extensions["quiz_pipeline"] = pipeline
    app.extensions["analysis"] = analyzer
    logger.info("App configured: %r, pool=%s", settings, pool.names())

    @app.teardown_appcontext
    def _remove_session(exc=None):
        Session.remove()

    @app.errorhandler(ProviderError)
    def _provider_error(e: ProviderError):
        logger.error("%s on %s: %s", e.error_code, request.path, e.message)
        body = {"success": False}
        body.update(e.to_dict())
        return jsonify(body), e.status_code

    @app.errorhandler(RequestEntityTooLarge)
    def _too_large(e):
        return jsonify({"success": False, "error": f"File exceeds {settings.max_upload_mb}MB limit.",
                        "errorCode": "FILE_TOO_LARGE", "retryable": False}), 413

    # ============== QUIZ ==============

    @app.post('/api/upload-and-analyze')
    def upload_and_analyze():
        file = request.files.get('pdf') or request.files.get('file')
        if not file or not file.filename:
            return _bad_request("No PDF uploaded.")
        data = file.read()
        if not data:
            return _bad_request("Uploaded file is empty.")

        fname = secure_filename(file.filename) or "document.pdf"
        topics, handle = pipeline.upload_and_analyze(data, file.mimetype or "application/pdf", fname)
        return jsonify({
            "success": True,
            "topics": [t.to_dict() for t in topics],
            "fileHandleId": handle.id,
        })

    @app.post('/api/generate-quiz')
    def generate_quiz():
        body = request.get_json(silent=True) or {}
        if not isinstance(body, dict):
            return _bad_request("Request body must be a JSON object.")
        topic = body.get('topic')
        topic = topic.strip() if isinstance(topic, str) else ''
        file_id = body.get('fileHandleId') or body.get('geminiFileName')
        count = body.get('questionCount')
        if not topic or not file_id or count in (None, ''):
            return _bad_request("Missing required parameters.")
        if isinstance(count, bool) or (isinstance(count, float) and not count.is_integer()):
            return _bad_request("questionCount must be a whole number.")
        try:
            count = int(count)
        except (TypeError, ValueError):
            return _bad_request("questionCount must be a number.")
        if count < 1:
            return _bad_request("questionCount must be at least 1.")

        quiz = pipeline.generate_quiz(topic, count, str(file_id))
        return jsonify({"success": True, "quiz": quiz.to_dict()})

    # ============== REVIEW ==============

    @app.post('/api/save-wrong-answer')
    def save_wrong_answer():
        try:
            record = WrongAnswerRecord.from_dict(request.get_json(silent=True) or {})
        except ValueError as e:
            return _bad_request(str(e))
        row = review_store.save(Session(), record)
        return jsonify({"success": True, "message": "Wrong answer saved", "id": str(row.id)})

    @app.get('/api/wrong-answers')
    def wrong_answers():
        rows = review_store.list_rows(Session())
        return jsonify({"success": True, "wrongAnswers": [review_store.row_to_dict(r) for r in rows]})

    @app.post('/api/analyze-weak-areas')
    def analyze_weak_areas():
        body = request.get_json(silent=True) or {}
        if not isinstance(body, dict):
            return _bad_request("Request body must be a JSON object.")
        if 'wrongAnswers' in body:
            raw = body['wrongAnswers']
            if not isinstance(raw, list):
                return _bad_request("wrongAnswers must be an array.")
            try:
                records = [WrongAnswerRecord.from_dict(r) for r in raw]
            except ValueError as e:
                return _bad_request(str(e))
        else:
            records = review_store.list_records(Session())

        analysis = analyzer.analyze(records)
        return jsonify({"success": True, "analysis": analysis.to_dict()})

    @app.get('/api/health')
    def health():
        return jsonify({
            "success": True,
            "providers": len(pool),
            "analysisTierOne": chat_provider is not None,
        })

    return app


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    create_app().run(port=int(os.getenv("PORT", "5000")), debug=True, threaded=True)
